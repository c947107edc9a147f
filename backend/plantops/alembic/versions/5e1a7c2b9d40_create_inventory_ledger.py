"""Create inventory ledger tables.

Revision ID: 5e1a7c2b9d40
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "5e1a7c2b9d40"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(9), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "plots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(50), nullable=False, index=True),
        *_timestamps(),
    )

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.String(50), nullable=False, index=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("unit", sa.String(32), nullable=False),
        sa.Column("reorder_point", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("status", sa.String(12), nullable=False, server_default="active"),
        sa.Column("avg_cost", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("suppliers", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        sa.CheckConstraint("reorder_point >= 0", name="ck_inventory_items_reorder_point"),
        sa.CheckConstraint("avg_cost >= 0", name="ck_inventory_items_avg_cost"),
    )
    op.create_index("ix_inventory_items_category_status", "inventory_items", ["category", "status"])

    op.create_table(
        "stock_lots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lot_id", sa.String(64), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False, index=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("plots.id"), nullable=False, index=True),
        sa.Column("batch_no", sa.String(100), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("received_quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit_cost", sa.Numeric(18, 4), nullable=False),
        sa.Column("total_cost", sa.Numeric(28, 8), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("supplier", sa.String(255), nullable=False),
        sa.Column("status", sa.String(9), nullable=False, server_default="available", index=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("received_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("lot_id", name="uq_stock_lots_lot_id"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_lots_quantity"),
        sa.CheckConstraint("quantity <= received_quantity", name="ck_stock_lots_quantity_le_received"),
        sa.CheckConstraint("unit_cost > 0", name="ck_stock_lots_unit_cost"),
    )
    op.create_index(
        "ix_stock_lots_fifo",
        "stock_lots",
        ["item_id", "warehouse_id", "status", "received_date"],
    )

    op.create_table(
        "stock_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.String(64), nullable=False),
        sa.Column("work_order_id", sa.Integer(), sa.ForeignKey("work_orders.id"), nullable=False, index=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False, index=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("plots.id"), nullable=True, index=True),
        sa.Column("status", sa.String(9), nullable=False, server_default="pending"),
        sa.Column("requested_by", sa.String(255), nullable=False),
        sa.Column("requested_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_by", sa.String(255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(255), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("fulfilled_by", sa.String(255), nullable=True),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("request_id", name="uq_stock_requests_request_id"),
        sa.CheckConstraint("quantity > 0", name="ck_stock_requests_quantity"),
    )
    op.create_index("ix_stock_requests_status_created", "stock_requests", ["status", "created_at"])

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("movement_id", sa.String(64), nullable=False),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("inventory_items.id"), nullable=False, index=True),
        sa.Column("lot_id", sa.Integer(), sa.ForeignKey("stock_lots.id"), nullable=True, index=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("plots.id"), nullable=False, index=True),
        sa.Column("type", sa.String(10), nullable=False, index=True),
        sa.Column("quantity", sa.Numeric(18, 4), nullable=False),
        sa.Column("unit_cost", sa.Numeric(18, 4), nullable=False),
        sa.Column("total_cost", sa.Numeric(28, 8), nullable=False),
        sa.Column("reason", sa.String(255), nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("performed_by", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("stock_request_id", sa.Integer(), sa.ForeignKey("stock_requests.id"), nullable=True, index=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("movement_id", name="uq_stock_movements_movement_id"),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity"),
    )
    op.create_index("ix_stock_movements_item_created", "stock_movements", ["item_id", "created_at"])

    op.create_table(
        "inventory_idempotency_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("scope", sa.String(64), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("payload_hash", sa.String(64), nullable=False),
        sa.Column("resource_id", sa.Integer(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("scope", "key", name="uq_inventory_idempotency_scope_key"),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("type", sa.String(64), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(255), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("inventory_idempotency_keys")
    op.drop_index("ix_stock_movements_item_created", table_name="stock_movements")
    op.drop_table("stock_movements")
    op.drop_index("ix_stock_requests_status_created", table_name="stock_requests")
    op.drop_table("stock_requests")
    op.drop_index("ix_stock_lots_fifo", table_name="stock_lots")
    op.drop_table("stock_lots")
    op.drop_index("ix_inventory_items_category_status", table_name="inventory_items")
    op.drop_table("inventory_items")
    op.drop_table("work_orders")
    op.drop_table("plots")
    op.drop_index("idx_users_role_active", table_name="users")
    op.drop_table("users")
