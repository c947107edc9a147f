"""Lot expiry sweep.

Moves available lots whose expiry date has passed to `expired` so they
stop counting towards availability. Safe to run from cron; a second run
on the same day finds nothing to do.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from plantops.database import WriteSessionLocal
from plantops.apps.inventory import lots as lot_services


def run(today: Optional[date] = None) -> dict:
    db = WriteSessionLocal()
    try:
        expired = lot_services.expire_lots(db, today=today)
        return {"expired": expired}
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    result = run()
    print("Lot expiry sweep completed:", result)
