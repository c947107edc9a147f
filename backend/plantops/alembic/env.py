# backend/plantops/alembic/env.py

from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

# Run from backend/ (alembic.ini) or anywhere else: make `plantops` importable.
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from plantops.database import WRITE_DB_URL, Base, write_engine  # noqa: E402
from plantops.apps.accounts import models as accounts_models  # noqa: F401, E402
from plantops.apps.warehouses import models as warehouse_models  # noqa: F401, E402
from plantops.apps.work import models as work_models  # noqa: F401, E402
from plantops.apps.inventory import models as inventory_models  # noqa: F401, E402
from plantops.apps.notifications import models as notification_models  # noqa: F401, E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL for the configured URL without connecting."""
    url = (config.get_main_option("sqlalchemy.url") or "").strip() or WRITE_DB_URL
    context.configure(url=url, target_metadata=target_metadata, literal_binds=True, compare_type=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    # Same engine (and statement timeout) the API writes through.
    with write_engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
