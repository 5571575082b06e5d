"""Initial invoicing schema: catalog, offers, customers, invoices, EMI ledger

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(128), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("purchase_price", sa.Integer(), nullable=False),
        sa.Column("selling_price", sa.Integer(), nullable=False),
        sa.Column("gst_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=False),
        sa.Column("track_imei", sa.Boolean(), nullable=False),
        sa.Column("sim_type", sa.String(16), nullable=False),
        sa.Column("warranty_period", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_category", "products", ["category"])
    op.create_index("ix_products_brand_name", "products", ["brand", "name"])

    op.create_table(
        "product_imeis",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("imei", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("imei", name="uq_product_imeis_imei"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_imeis_product_id", "product_imeis", ["product_id"])

    op.create_table(
        "offers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("offer_type", sa.String(16), nullable=False),
        sa.Column("target_id", sa.String(64), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_quantity", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_offers_scope", "offers", ["offer_type", "target_id", "is_active"])
    op.create_index("ix_offers_is_active", "offers", ["is_active"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("mobile", sa.String(32), nullable=False),
        sa.Column("address", sa.String(512), nullable=True),
        sa.Column("outstanding_balance", sa.Integer(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("mobile", name="uq_customers_mobile"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_mobile", sa.String(32), nullable=False),
        sa.Column("sub_total", sa.Integer(), nullable=False),
        sa.Column("discount", sa.Integer(), nullable=False),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("gst_total", sa.Integer(), nullable=False),
        sa.Column("grand_total", sa.Integer(), nullable=False),
        sa.Column("payment_mode", sa.String(16), nullable=False),
        sa.Column("payment_details", sa.String(255), nullable=True),
        sa.Column("paid_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoices_customer_id", "invoices", ["customer_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])
    op.create_index("ix_invoices_status_created", "invoices", ["status", "created_at"])

    op.create_table(
        "invoice_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("original_price", sa.Integer(), nullable=False),
        sa.Column("purchase_price", sa.Integer(), nullable=False),
        sa.Column("offer_name", sa.String(255), nullable=True),
        sa.Column("offer_discount", sa.Integer(), nullable=False),
        sa.Column("sim_type", sa.String(16), nullable=True),
        sa.Column("imeis", sa.JSON(), nullable=False),
        sa.Column("gst_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("taxable_value", sa.Integer(), nullable=False),
        sa.Column("gst_amount", sa.Integer(), nullable=False),
        sa.Column("cgst", sa.Numeric(12, 2), nullable=False),
        sa.Column("sgst", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Integer(), nullable=False),
        sa.Column("discount_share", sa.Integer(), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"])
    op.create_index("ix_invoice_lines_product_id", "invoice_lines", ["product_id"])

    op.create_table(
        "invoice_mixed_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("mode", sa.String(16), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_mixed_payments_invoice_id", "invoice_mixed_payments", ["invoice_id"])

    op.create_table(
        "emi_plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("rate_of_interest", sa.Numeric(6, 2), nullable=False),
        sa.Column("tenure_months", sa.Integer(), nullable=True),
        sa.Column("down_payment", sa.Integer(), nullable=False),
        sa.Column("monthly_installment", sa.Integer(), nullable=False),
        sa.Column("total_paid", sa.Integer(), nullable=False),
        sa.Column("next_due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("invoice_id", name="uq_emi_plans_invoice"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_emi_plans_next_due", "emi_plans", ["next_due_date"])

    op.create_table(
        "emi_installments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("emi_plan_id", sa.Integer(), sa.ForeignKey("emi_plans.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("payment_mode", sa.String(16), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("recorded_by_user_id", sa.Integer(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_emi_installments_emi_plan_id", "emi_installments", ["emi_plan_id"])

    op.create_table(
        "invoice_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date_prefix", sa.String(32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("date_prefix", name="uq_invoice_sequences_prefix"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("invoice_sequences")
    op.drop_index("ix_emi_installments_emi_plan_id", table_name="emi_installments")
    op.drop_table("emi_installments")
    op.drop_index("ix_emi_plans_next_due", table_name="emi_plans")
    op.drop_table("emi_plans")
    op.drop_index("ix_invoice_mixed_payments_invoice_id", table_name="invoice_mixed_payments")
    op.drop_table("invoice_mixed_payments")
    op.drop_index("ix_invoice_lines_product_id", table_name="invoice_lines")
    op.drop_index("ix_invoice_lines_invoice_id", table_name="invoice_lines")
    op.drop_table("invoice_lines")
    op.drop_index("ix_invoices_status_created", table_name="invoices")
    op.drop_index("ix_invoices_status", table_name="invoices")
    op.drop_index("ix_invoices_customer_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_table("customers")
    op.drop_index("ix_offers_is_active", table_name="offers")
    op.drop_index("ix_offers_scope", table_name="offers")
    op.drop_table("offers")
    op.drop_index("ix_product_imeis_product_id", table_name="product_imeis")
    op.drop_table("product_imeis")
    op.drop_index("ix_products_brand_name", table_name="products")
    op.drop_index("ix_products_category", table_name="products")
    op.drop_table("products")
