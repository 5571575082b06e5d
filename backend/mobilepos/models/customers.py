from __future__ import annotations

from ..extensions import db
from mobilepos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Retail customer, keyed by mobile number.

    outstanding_balance is what the customer still owes across Partial,
    Pending and EMI invoices. It never goes below zero.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("mobile", name="uq_customers_mobile"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    mobile = db.Column(db.String(32), nullable=False)
    address = db.Column(db.String(512), nullable=True)

    outstanding_balance = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchase_history = db.relationship(
        "Invoice",
        backref=db.backref("customer", lazy=True),
        lazy=True,
        order_by="Invoice.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "mobile": self.mobile,
            "address": self.address,
            "outstanding_balance": self.outstanding_balance,
            "purchase_history": [inv.id for inv in self.purchase_history],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
