"""initial reconciliation schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

party_category_enum = sa.Enum("CUSTOMER", "SUPPLIER", name="partycategory")


def _item_table(name: str, invoice_table: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("store", sa.String(length=120), nullable=False),
        sa.Column("product", sa.String(length=64), nullable=False),
        sa.Column("reel_no", sa.String(length=64), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("weight", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("rate", sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column("rate_on", sa.String(length=16), nullable=False),
        sa.Column("value", sa.Numeric(precision=14, scale=2), nullable=True),
        sa.ForeignKeyConstraint(["invoice_id"], [f"{invoice_table}.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f(f"ix_{name}_id"), name, ["id"], unique=False)
    op.create_index(op.f(f"ix_{name}_invoice_id"), name, ["invoice_id"], unique=False)
    op.create_index(op.f(f"ix_{name}_product"), name, ["product"], unique=False)
    op.create_index(op.f(f"ix_{name}_store"), name, ["store"], unique=False)


def _voucher_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("voucher_number", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("party_type", party_category_enum, nullable=False),
        sa.Column("party_ref", sa.String(length=255), nullable=False),
        sa.Column("mode", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f(f"ix_{name}_date"), name, ["date"], unique=False)
    op.create_index(op.f(f"ix_{name}_id"), name, ["id"], unique=False)
    op.create_index(op.f(f"ix_{name}_party_ref"), name, ["party_ref"], unique=False)
    op.create_index(op.f(f"ix_{name}_party_type"), name, ["party_type"], unique=False)
    op.create_index(op.f(f"ix_{name}_voucher_number"), name, ["voucher_number"], unique=True)


def _production_line_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("reel_no", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("weight", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["production_id"], ["productions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f(f"ix_{name}_id"), name, ["id"], unique=False)
    op.create_index(op.f(f"ix_{name}_product_id"), name, ["product_id"], unique=False)
    op.create_index(op.f(f"ix_{name}_production_id"), name, ["production_id"], unique=False)
    op.create_index(op.f(f"ix_{name}_store_id"), name, ["store_id"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    party_category_enum.create(bind, checkfirst=True)

    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_stores_id"), "stores", ["id"], unique=False)
    op.create_index(op.f("ix_stores_name"), "stores", ["name"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("brand", sa.String(length=120), nullable=True),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("product_type", sa.String(length=24), nullable=False),
        sa.Column("length", sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column("width", sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column("grams", sa.Numeric(precision=12, scale=3), nullable=False),
        sa.Column("cost_rate_qty", sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column("sale_rate_qty", sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column("sale_rate_kg", sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column("min_stock_level", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("max_stock_level", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_products_category"), "products", ["category"], unique=False)
    op.create_index(op.f("ix_products_id"), "products", ["id"], unique=False)
    op.create_index(op.f("ix_products_item"), "products", ["item"], unique=True)

    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("party_type", party_category_enum, nullable=False),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("person", sa.String(length=160), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("mobile", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_parties_code"), "parties", ["code"], unique=False)
    op.create_index(op.f("ix_parties_id"), "parties", ["id"], unique=False)
    op.create_index(op.f("ix_parties_party_type"), "parties", ["party_type"], unique=False)
    op.create_index(op.f("ix_parties_person"), "parties", ["person"], unique=False)

    op.create_table(
        "sale_invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("customer", sa.String(length=255), nullable=False),
        sa.Column("payment_type", sa.String(length=16), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("discount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("freight", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("net_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("received", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("balance", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sale_invoices_customer"), "sale_invoices", ["customer"], unique=False)
    op.create_index(op.f("ix_sale_invoices_date"), "sale_invoices", ["date"], unique=False)
    op.create_index(op.f("ix_sale_invoices_id"), "sale_invoices", ["id"], unique=False)
    op.create_index(op.f("ix_sale_invoices_invoice_number"), "sale_invoices", ["invoice_number"], unique=True)
    _item_table("sale_invoice_items", "sale_invoices")

    op.create_table(
        "purchase_invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("supplier", sa.String(length=255), nullable=False),
        sa.Column("total_amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("discount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("freight", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_purchase_invoices_date"), "purchase_invoices", ["date"], unique=False)
    op.create_index(op.f("ix_purchase_invoices_id"), "purchase_invoices", ["id"], unique=False)
    op.create_index(
        op.f("ix_purchase_invoices_invoice_number"),
        "purchase_invoices",
        ["invoice_number"],
        unique=True,
    )
    op.create_index(op.f("ix_purchase_invoices_supplier"), "purchase_invoices", ["supplier"], unique=False)
    _item_table("purchase_invoice_items", "purchase_invoices")

    _voucher_table("payments")
    _voucher_table("receipts")

    op.create_table(
        "productions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_number", sa.String(length=64), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_productions_date"), "productions", ["date"], unique=False)
    op.create_index(op.f("ix_productions_id"), "productions", ["id"], unique=False)
    op.create_index(
        op.f("ix_productions_production_number"),
        "productions",
        ["production_number"],
        unique=True,
    )
    _production_line_table("production_materials")
    _production_line_table("production_outputs")

    op.create_table(
        "stock_snapshots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("reel_no", sa.String(length=64), nullable=True),
        sa.Column("quantity", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("weight", sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("store_id", "product_id", "reel_no", name="uq_stock_snapshots_key"),
    )
    op.create_index(op.f("ix_stock_snapshots_id"), "stock_snapshots", ["id"], unique=False)
    op.create_index(op.f("ix_stock_snapshots_product_id"), "stock_snapshots", ["product_id"], unique=False)
    op.create_index(op.f("ix_stock_snapshots_store_id"), "stock_snapshots", ["store_id"], unique=False)


def downgrade() -> None:
    op.drop_table("stock_snapshots")
    op.drop_table("production_outputs")
    op.drop_table("production_materials")
    op.drop_table("productions")
    op.drop_table("receipts")
    op.drop_table("payments")
    op.drop_table("purchase_invoice_items")
    op.drop_table("purchase_invoices")
    op.drop_table("sale_invoice_items")
    op.drop_table("sale_invoices")
    op.drop_table("parties")
    op.drop_table("products")
    op.drop_table("stores")
    bind = op.get_bind()
    sa.Enum(name="partycategory").drop(bind, checkfirst=True)
