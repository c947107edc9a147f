from __future__ import annotations

from .guards import (
    guard_request_approve,
    guard_request_fulfill,
    guard_request_reject,
)

WORKFLOWS = {
    "stock_request": {
        "transitions": {
            "pending": {
                "approved": [guard_request_approve],
                "rejected": [guard_request_reject],
            },
            "approved": {
                "fulfilled": [guard_request_fulfill],
            },
            "rejected": {},
            "fulfilled": {},
        }
    },
}
