"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _archive():
    return [
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False, index=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _address():
    return [
        sa.Column("street", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("OWNER", "MANAGER", "STAFF", name="userrole"), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Warehouses - at most one default row
    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("code", sa.String(50), unique=True, nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_address(),
        sa.Column("contact_name", sa.String(255), nullable=True),
        sa.Column("contact_phone", sa.String(50), nullable=True),
        sa.Column("contact_email", sa.String(255), nullable=True),
        sa.Column(
            "parent_warehouse_id", sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, index=True),
        *_timestamps(),
    )
    op.create_index(
        "uq_warehouses_single_default",
        "warehouses",
        ["is_default"],
        unique=True,
        sqlite_where=sa.text("is_default = 1"),
        postgresql_where=sa.text("is_default = true"),
    )

    # Suppliers
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("code", sa.String(50), unique=True, nullable=True),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("tax_id", sa.String(50), nullable=True),
        sa.Column("categories", sa.JSON(), nullable=True),
        sa.Column("contact_person", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("whatsapp", sa.String(50), nullable=True),
        sa.Column("telegram", sa.String(100), nullable=True),
        *_address(),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("payment_terms", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("balance", sa.Numeric(14, 2), nullable=False, index=True),
        sa.Column("total_purchases", sa.Numeric(14, 2), nullable=False),
        sa.Column("total_payments", sa.Numeric(14, 2), nullable=False),
        sa.Column("last_purchase_date", sa.DateTime(timezone=True), nullable=True),
        *_archive(),
        *_timestamps(),
    )

    # Inventory items
    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("sku", sa.String(100), unique=True, nullable=True),
        sa.Column("category", sa.String(100), nullable=True, index=True),
        sa.Column("unit", sa.String(20), nullable=False),
        sa.Column("current_stock", sa.Numeric(14, 3), server_default="0", nullable=False),
        sa.Column("par_level", sa.Numeric(14, 3), server_default="0", nullable=False),
        sa.Column("cost", sa.Numeric(14, 4), server_default="0", nullable=False),
        sa.Column("supplier_name", sa.String(255), nullable=True),
        sa.Column(
            "default_warehouse_id", sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True, index=True,
        ),
        sa.Column("tracking_method", sa.String(20), nullable=False),
        sa.Column("consumption_unit", sa.String(20), nullable=True),
        sa.Column("conversion_rate", sa.Numeric(14, 4), nullable=False),
        sa.Column("storage_conditions", sa.String(255), nullable=True),
        sa.Column("shelf_life_days", sa.Integer(), nullable=True),
        sa.Column("expiry_tracking_enabled", sa.Boolean(), nullable=False),
        sa.Column("low_stock_alert_enabled", sa.Boolean(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("allergens", sa.JSON(), nullable=True),
        sa.Column("last_restock_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_archive(),
        *_timestamps(),
    )

    # Per warehouse balances
    op.create_table(
        "inventory_stock",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "item_id", sa.Integer(),
            sa.ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column(
            "warehouse_id", sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("quantity", sa.Numeric(14, 3), server_default="0", nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("par_level", sa.Numeric(14, 3), nullable=False),
        sa.Column("reorder_point", sa.Numeric(14, 3), nullable=False),
        sa.Column("safety_stock", sa.Numeric(14, 3), nullable=False),
        sa.Column("last_count_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_movement_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("item_id", "warehouse_id", name="uq_inventory_stock_item_warehouse"),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_stock_quantity_non_negative"),
    )

    # Movement ledger
    op.create_table(
        "inventory_movements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "item_id", sa.Integer(),
            sa.ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("type", sa.String(30), nullable=False, index=True),
        sa.Column("delta", sa.Numeric(14, 3), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("balance_after", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "source_warehouse_id", sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column(
            "target_warehouse_id", sa.Integer(),
            sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("unit_cost", sa.Numeric(14, 4), nullable=False),
        sa.Column("total_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_by", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
        ),
        sa.Column(
            "supplier_id", sa.Integer(),
            sa.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_inventory_movements_item_created", "inventory_movements", ["item_id", "created_at"])
    op.create_index(
        "ix_inventory_movements_warehouse_created", "inventory_movements", ["warehouse_id", "created_at"]
    )

    # Supplier history
    op.create_table(
        "supplier_price_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "item_id", sa.Integer(),
            sa.ForeignKey("inventory_items.id", ondelete="SET NULL"), nullable=True, index=True,
        ),
        sa.Column("item_name", sa.String(255), nullable=True),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("unit_cost", sa.Numeric(14, 4), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("total_cost", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("invoice_number", sa.String(100), nullable=True),
        sa.Column("invoice_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recorded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_supplier_price_history_supplier_created", "supplier_price_history", ["supplier_id", "created_at"]
    )

    op.create_table(
        "supplier_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("method", sa.String(30), nullable=False),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("recorded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_supplier_payments_supplier_paid", "supplier_payments", ["supplier_id", "paid_at"])

    op.create_table(
        "supplier_invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_id", sa.Integer(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("number", sa.String(100), nullable=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=True),
        sa.Column("issued_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("file_path", sa.String(500), nullable=True),
        sa.Column("file_url", sa.String(500), nullable=True),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("uploaded_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_supplier_invoices_supplier_created", "supplier_invoices", ["supplier_id", "created_at"]
    )

    # Menu and orders
    op.create_table(
        "menu_items",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("available", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("table_name", sa.String(100), nullable=True),
        sa.Column("order_type", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount", sa.Numeric(12, 2), nullable=True),
        sa.Column("total", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, index=True),
    )

    # Recipes
    op.create_table(
        "recipes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("code", sa.String(50), unique=True, nullable=True),
        sa.Column(
            "menu_item_id", sa.Integer(),
            sa.ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True,
        ),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("estimated_cost", sa.Numeric(14, 4), nullable=False),
        sa.Column("default_version_id", sa.Integer(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        *_archive(),
        *_timestamps(),
    )

    op.create_table(
        "recipe_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "recipe_id", sa.Integer(),
            sa.ForeignKey("recipes.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("ingredient_total_cost", sa.Numeric(14, 4), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("recipe_id", "version_number", name="uq_recipe_versions_number"),
    )

    op.create_table(
        "recipe_ingredients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "version_id", sa.Integer(),
            sa.ForeignKey("recipe_versions.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column(
            "inventory_item_id", sa.Integer(),
            sa.ForeignKey("inventory_items.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("quantity", sa.Numeric(14, 4), nullable=False),
        sa.Column("unit", sa.String(20), nullable=True),
        sa.Column("waste_percent", sa.Numeric(6, 2), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("warehouse_id", sa.Integer(), sa.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False),
    )

    op.create_table(
        "recipe_portions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "version_id", sa.Integer(),
            sa.ForeignKey("recipe_versions.id", ondelete="CASCADE"), nullable=False, index=True,
        ),
        sa.Column("key", sa.String(50), nullable=False),
        sa.Column("label", sa.String(100), nullable=True),
        sa.Column("multiplier", sa.Numeric(10, 4), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )

    # Operations: audit log and usage outbox
    op.create_table(
        "audit_log_entries",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column("user_id", sa.Integer(), nullable=True, index=True),
        sa.Column("user_name", sa.String(200), nullable=True),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("entity_type", sa.String(50), nullable=True, index=True),
        sa.Column("entity_id", sa.String(50), nullable=True),
        sa.Column("summary", sa.String(500), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, index=True),
    )

    op.create_table(
        "inventory_usage_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, index=True),
        sa.Column(
            "order_id", sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, index=True),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("inventory_usage_tasks")
    op.drop_table("audit_log_entries")
    op.drop_table("recipe_portions")
    op.drop_table("recipe_ingredients")
    op.drop_table("recipe_versions")
    op.drop_table("recipes")
    op.drop_table("orders")
    op.drop_table("menu_items")
    op.drop_table("supplier_invoices")
    op.drop_table("supplier_payments")
    op.drop_table("supplier_price_history")
    op.drop_table("inventory_movements")
    op.drop_table("inventory_stock")
    op.drop_table("inventory_items")
    op.drop_table("suppliers")
    op.drop_index("uq_warehouses_single_default", table_name="warehouses")
    op.drop_table("warehouses")
    op.drop_table("users")
