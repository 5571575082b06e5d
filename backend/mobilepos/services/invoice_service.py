# Overview: Service-layer operations for invoices; orchestrates pricing, allocation, payment and stock.

"""
Settlement Coordinator

create_invoice runs as one database transaction:

1. normalize customer name/mobile (ValidationError if missing)
2. require a non-empty cart
3. price every line; any failure aborts before anything is written
4. allocate the document discount, compute totals
5. settle the payment plan (and EMI schedule)
6. allocate INV-YYYYMMDD-NNN
7. save the invoice, then consume stock and serials
8. attach to the customer and raise their outstanding balance

Stock is only consumed after the invoice row (with its unique number) has
been flushed, and both are committed together, so a failure at any step
leaves neither behind. A lost race on the invoice number or on a new
customer's mobile is retried from step 3 with fresh reads.
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..config import PricingSettings, get_pricing_settings
from ..errors import ValidationError, NotFoundError
from ..models import Invoice, InvoiceLine, Customer
from ..models.invoices import INVOICE_STATUSES
from ..models.catalog import DISCOUNT_FIXED, DISCOUNT_TYPES
from ..validation import require_text, optional_text, coerce_choice
from .allocation_service import allocate_document_discount
from .concurrency import lock_for_update, run_in_transaction, begin_immediate, RETRYABLE_ERRORS
from .document_service import next_invoice_number
from .emi_service import plan_payment, attach_plan
from .inventory_service import consume_stock
from .pricing_service import PricedLine, price_cart
from mobilepos.time_utils import utcnow

_MOBILE_SEPARATORS = re.compile(r"[\s\-().]")


def normalize_mobile(value) -> str:
    mobile = _MOBILE_SEPARATORS.sub("", require_text(value, "customer_mobile"))
    if not mobile:
        raise ValidationError("customer_mobile is required", details={"field": "customer_mobile"})
    return mobile


def _customer_fields(customer_info: dict | None) -> tuple[str, str, str | None]:
    info = customer_info or {}
    name = info.get("name")
    mobile = info.get("mobile") or info.get("phone")
    if not name or not mobile:
        raise ValidationError(
            "Customer name and mobile are required",
            details={"fields": ["customer_name", "customer_mobile"]},
        )
    return require_text(name, "customer_name"), normalize_mobile(mobile), optional_text(info.get("address"))


def _find_or_create_customer(name: str, mobile: str, address: str | None) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(mobile=mobile)).first()
    if customer:
        return customer
    customer = Customer(name=name, mobile=mobile, address=address, outstanding_balance=0)
    db.session.add(customer)
    db.session.flush()
    return customer


def _line_row(line: PricedLine) -> InvoiceLine:
    return InvoiceLine(
        position=line.position,
        product_id=line.product_id,
        name=line.name,
        category=line.category,
        quantity=line.quantity,
        unit_price=line.unit_price,
        original_price=line.original_price,
        purchase_price=line.purchase_price,
        offer_name=line.offer_name,
        offer_discount=line.offer_discount,
        sim_type=line.sim_type,
        imeis=list(line.imeis),
        gst_percent=line.gst_percent,
        taxable_value=line.tax.taxable_value,
        gst_amount=line.tax.gst_amount,
        cgst=line.tax.cgst,
        sgst=line.tax.sgst,
        discount=line.line_discount,
        discount_share=line.discount_share,
        total=line.total,
    )


def create_invoice(
    customer_info: dict,
    items: list[dict],
    *,
    discount=0,
    discount_type: str = DISCOUNT_FIXED,
    payment: dict | None = None,
    created_by_user_id: int | None = None,
    settings: PricingSettings | None = None,
) -> Invoice:
    """
    Price, settle and save one cart.

    Raises ValidationError, InsufficientStockError, ImeiMismatchError or
    PersistenceError; nothing is written unless an Invoice is returned.
    """
    settings = settings or get_pricing_settings()
    name, mobile, address = _customer_fields(customer_info)
    if not items:
        raise ValidationError("No invoice items")
    discount_type = discount_type or DISCOUNT_FIXED
    if discount_type not in DISCOUNT_TYPES:
        raise ValidationError(
            f"discount_type must be one of {list(DISCOUNT_TYPES)}",
            details={"field": "discount_type"},
        )

    def _op():
        begin_immediate()
        now = utcnow()

        lines = price_cart(items, settings, as_of=now)
        totals = allocate_document_discount(lines, discount, discount_type)
        plan = plan_payment(totals.grand_total, payment, settings, now)

        customer = _find_or_create_customer(name, mobile, address)

        invoice = Invoice(
            invoice_number=next_invoice_number(settings, now),
            customer_id=customer.id,
            customer_name=name,
            customer_mobile=mobile,
            sub_total=totals.sub_total,
            discount=totals.discount,
            discount_type=totals.discount_type,
            discount_value=totals.discount_value,
            gst_total=totals.gst_total,
            grand_total=totals.grand_total,
            created_by_user_id=created_by_user_id,
            created_at=now,
        )
        for line in lines:
            invoice.lines.append(_line_row(line))
        attach_plan(invoice, plan, recorded_by_user_id=created_by_user_id)

        db.session.add(invoice)
        db.session.flush()

        for line in lines:
            if line.product is not None:
                consume_stock(line.product, line.quantity, line.imeis)

        customer.purchase_history.append(invoice)
        increase = plan.balance_increase(totals.grand_total)
        if increase:
            customer.outstanding_balance = (customer.outstanding_balance or 0) + increase

        db.session.commit()
        current_app.logger.info(
            "Invoice %s created: grand_total=%s status=%s", invoice.invoice_number, invoice.grand_total, invoice.status
        )
        return invoice

    return run_in_transaction(_op, retry_on=RETRYABLE_ERRORS + (IntegrityError,))


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(status: str | None = None) -> list[Invoice]:
    q = db.session.query(Invoice)
    if status:
        q = q.filter_by(status=coerce_choice(status, "status", INVOICE_STATUSES))
    return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
