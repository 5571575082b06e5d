from __future__ import annotations

from ..extensions import db
from mobilepos.time_utils import to_utc_z


PAYMENT_CASH = "Cash"
PAYMENT_UPI = "UPI"
PAYMENT_CARD = "Card"
PAYMENT_MIXED = "Mixed"
PAYMENT_EMI = "EMI"
PAYMENT_MODES = (PAYMENT_CASH, PAYMENT_UPI, PAYMENT_CARD, PAYMENT_MIXED, PAYMENT_EMI)
# Tenders allowed inside a mixed split
TENDER_MODES = (PAYMENT_CASH, PAYMENT_UPI, PAYMENT_CARD)

STATUS_PAID = "Paid"
STATUS_PARTIAL = "Partial"
STATUS_PENDING = "Pending"
STATUS_CANCELLED = "Cancelled"
STATUS_EMI_ACTIVE = "EMI-Active"
STATUS_EMI_COMPLETED = "EMI-Completed"
INVOICE_STATUSES = (
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_PENDING,
    STATUS_CANCELLED,
    STATUS_EMI_ACTIVE,
    STATUS_EMI_COMPLETED,
)

DOWN_PAYMENT_NOTE = "Down Payment"


class Invoice(db.Model):
    """
    Settlement record for one cart.

    Immutable after creation apart from the EMI ledger (emi_plan) and the
    status transition EMI-Active -> EMI-Completed.

    Amounts are whole currency units. Invariants:
    - sum(line.total) == grand_total
    - sub_total + gst_total == grand_total
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "INV-20261018-007")
    invoice_number = db.Column(db.String(32), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    # Snapshot at time of sale
    customer_name = db.Column(db.String(255), nullable=False)
    customer_mobile = db.Column(db.String(32), nullable=False)

    sub_total = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Integer, nullable=False, default=0)
    discount_type = db.Column(db.String(16), nullable=False, default="Fixed")
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    gst_total = db.Column(db.Integer, nullable=False)
    grand_total = db.Column(db.Integer, nullable=False)

    payment_mode = db.Column(db.String(16), nullable=False, default=PAYMENT_CASH)
    payment_details = db.Column(db.String(255), nullable=True)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=STATUS_PAID, index=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
    )
    mixed_payments = db.relationship(
        "MixedPayment",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="MixedPayment.id",
    )
    emi_plan = db.relationship(
        "EmiPlan",
        backref="invoice",
        uselist=False,
        lazy=True,
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_mobile": self.customer_mobile,
            "sub_total": self.sub_total,
            "discount": self.discount,
            "discount_details": {
                "type": self.discount_type,
                "value": float(self.discount_value) if self.discount_value is not None else 0,
            },
            "gst_total": self.gst_total,
            "grand_total": self.grand_total,
            "payment_mode": self.payment_mode,
            "payment_details": self.payment_details,
            "paid_amount": self.paid_amount,
            "mixed_payments": [p.to_dict() for p in self.mixed_payments],
            "emi_details": self.emi_plan.to_dict() if self.emi_plan else None,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """
    One priced cart entry. product_id is NULL for ad-hoc items.

    discount is the caller's line discount; discount_share is this line's
    part of the document discount. unit_price * quantity - discount
    - discount_share == total.
    """
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    unit_price = db.Column(db.Integer, nullable=False)  # tax-inclusive, after offer
    original_price = db.Column(db.Integer, nullable=False)
    purchase_price = db.Column(db.Integer, nullable=False, default=0)
    offer_name = db.Column(db.String(255), nullable=True)
    offer_discount = db.Column(db.Integer, nullable=False, default=0)  # per unit

    sim_type = db.Column(db.String(16), nullable=True)
    imeis = db.Column(db.JSON, nullable=False, default=lambda: [])

    gst_percent = db.Column(db.Numeric(5, 2), nullable=False)
    taxable_value = db.Column(db.Integer, nullable=False)
    gst_amount = db.Column(db.Integer, nullable=False)
    cgst = db.Column(db.Numeric(12, 2), nullable=False)
    sgst = db.Column(db.Numeric(12, 2), nullable=False)

    discount = db.Column(db.Integer, nullable=False, default=0)
    discount_share = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": self.position,
            "product_id": self.product_id,
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "price": self.unit_price,
            "original_price": self.original_price,
            "purchase_price": self.purchase_price,
            "offer_name": self.offer_name,
            "offer_discount": self.offer_discount,
            "sim_type": self.sim_type,
            "imei": list(self.imeis or []),
            "gst_percent": float(self.gst_percent),
            "taxable_value": self.taxable_value,
            "gst_amount": self.gst_amount,
            "cgst": float(self.cgst),
            "sgst": float(self.sgst),
            "discount": self.discount,
            "discount_share": self.discount_share,
            "total": self.total,
        }


class MixedPayment(db.Model):
    """One tender of a Mixed-mode settlement."""
    __tablename__ = "invoice_mixed_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    mode = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {"mode": self.mode, "amount": self.amount}


class EmiPlan(db.Model):
    """
    Installment plan attached to an EMI invoice.

    total_paid always equals the sum of installment amounts (the down
    payment is recorded as the first installment).
    """
    __tablename__ = "emi_plans"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", name="uq_emi_plans_invoice"),
        db.Index("ix_emi_plans_next_due", "next_due_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False)

    rate_of_interest = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    tenure_months = db.Column(db.Integer, nullable=True)
    down_payment = db.Column(db.Integer, nullable=False, default=0)
    monthly_installment = db.Column(db.Integer, nullable=False)
    total_paid = db.Column(db.Integer, nullable=False, default=0)
    next_due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    installments = db.relationship(
        "EmiInstallment",
        backref="plan",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="EmiInstallment.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "rate_of_interest": float(self.rate_of_interest or 0),
            "tenure_months": self.tenure_months,
            "down_payment": self.down_payment,
            "monthly_installment": self.monthly_installment,
            "total_paid": self.total_paid,
            "next_due_date": to_utc_z(self.next_due_date),
            "installments": [i.to_dict() for i in self.installments],
        }


class EmiInstallment(db.Model):
    """Append-only EMI ledger entry."""
    __tablename__ = "emi_installments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    emi_plan_id = db.Column(db.Integer, db.ForeignKey("emi_plans.id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    payment_mode = db.Column(db.String(16), nullable=False)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    recorded_by_user_id = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "payment_mode": self.payment_mode,
            "payment_date": to_utc_z(self.payment_date),
            "note": self.note,
        }


class InvoiceSequence(db.Model):
    """
    Per-day invoice counter.

    next_number is advanced under a row lock; invoices.invoice_number is
    still unique on its own.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("date_prefix", name="uq_invoice_sequences_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    date_prefix = db.Column(db.String(32), nullable=False)  # e.g. "INV-20261018"
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date_prefix": self.date_prefix,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
