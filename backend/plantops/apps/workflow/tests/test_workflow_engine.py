from __future__ import annotations

import pytest

from plantops.apps.workflow import TransitionError, allowed_targets, apply_transition


def test_apply_transition_allows_request_approval(db_session):
    apply_transition(
        db_session,
        actor="Estate Manager",
        entity_type="stock_request",
        entity_id="REQ-1",
        from_state="pending",
        to_state="approved",
        before_obj={"status": "pending", "warehouse_id": 1},
        after_obj={"status": "approved", "approved_by": "Estate Manager"},
    )


def test_apply_transition_rejects_missing_rejection_requirements(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor=None,
            entity_type="stock_request",
            entity_id="REQ-2",
            from_state="pending",
            to_state="rejected",
            before_obj={"status": "pending"},
            after_obj={"status": "rejected", "rejected_by": " ", "rejection_reason": None},
        )

    assert excinfo.value.code == "missing_requirements"
    assert {item["field"] for item in excinfo.value.detail} == {"rejected_by", "rejection_reason"}


def test_apply_transition_rejects_invalid_transition(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor="System",
            entity_type="stock_request",
            entity_id="REQ-3",
            from_state="pending",
            to_state="fulfilled",
            before_obj={"status": "pending", "warehouse_id": 1},
            after_obj={"status": "fulfilled"},
        )

    assert excinfo.value.code == "invalid_transition"
    assert "pending" in str(excinfo.value)


def test_fulfill_guard_requires_warehouse(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            actor="System",
            entity_type="stock_request",
            entity_id="REQ-4",
            from_state="approved",
            to_state="fulfilled",
            before_obj={"status": "approved", "warehouse_id": None},
            after_obj={"status": "fulfilled"},
        )

    assert excinfo.value.code == "missing_requirements"
    assert excinfo.value.detail[0]["field"] == "warehouse_id"


def test_terminal_states_have_no_targets():
    assert allowed_targets("stock_request", "pending") == ["approved", "rejected"]
    assert allowed_targets("stock_request", "approved") == ["fulfilled"]
    assert allowed_targets("stock_request", "fulfilled") == []
    assert allowed_targets("stock_request", "rejected") == []
