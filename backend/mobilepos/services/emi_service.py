# Overview: Service-layer operations for settlement plans; payment mode, EMI schedule and installments.

"""
Payment / EMI Planner

Settlement states:
- Paid (default), Partial, Pending: no further state machine; what is owed
  is carried on the customer's outstanding balance
- EMI-Active -> EMI-Completed: installment plan, completed once
  total_paid >= grand_total * (1 + rate/100)
- Cancelled: terminal, never produced by this module

EMI activation needs payment mode EMI or Mixed plus EMI parameters. Either
the caller passes a precomputed monthly_installment (trusted), or rate,
tenure and down payment, from which:
    interest            = grand_total * rate / 100
    monthly_installment = round((grand_total + interest - down_payment) / tenure)
The down payment is always recorded as the first installment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..config import PricingSettings
from ..errors import ValidationError, NotFoundError
from ..models import Invoice, EmiPlan, EmiInstallment, Customer, MixedPayment
from ..models.invoices import (
    PAYMENT_CASH,
    PAYMENT_MIXED,
    PAYMENT_EMI,
    PAYMENT_MODES,
    TENDER_MODES,
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_PENDING,
    STATUS_CANCELLED,
    STATUS_EMI_ACTIVE,
    STATUS_EMI_COMPLETED,
    DOWN_PAYMENT_NOTE,
)
from ..money import ZERO, HUNDRED, to_decimal, round_amount
from ..validation import (
    coerce_amount,
    coerce_decimal,
    coerce_quantity,
    coerce_datetime,
    coerce_choice,
    optional_text,
)
from .concurrency import lock_for_update, run_in_transaction, begin_immediate
from mobilepos.time_utils import utcnow, add_months

# Statuses a caller may ask for when creating a non-EMI invoice
INITIAL_STATUSES = (STATUS_PAID, STATUS_PARTIAL, STATUS_PENDING)
UNPAID_STATUSES = (STATUS_PARTIAL, STATUS_PENDING)


@dataclass
class EmiSchedule:
    rate_of_interest: Decimal
    tenure_months: int | None
    down_payment: int
    monthly_installment: int
    total_paid: int
    next_due_date: datetime
    installments: list[dict] = field(default_factory=list)


@dataclass
class PaymentPlan:
    mode: str
    status: str
    paid_amount: int
    details: str | None = None
    mixed_payments: list[tuple[str, int]] = field(default_factory=list)
    emi: EmiSchedule | None = None

    def balance_increase(self, grand_total: int) -> int:
        """What the customer owes after this invoice is saved."""
        if self.status == STATUS_EMI_ACTIVE and self.emi is not None:
            return max(0, grand_total - self.emi.down_payment)
        if self.status in UNPAID_STATUSES:
            return max(0, grand_total - self.paid_amount)
        return 0


def total_payable(grand_total: int, rate_of_interest) -> Decimal:
    return to_decimal(grand_total) * (1 + to_decimal(rate_of_interest or 0) / HUNDRED)


def _precomputed_installment(emi: dict) -> int:
    """Caller-supplied monthly installment, 0 when absent ("0" and 0 alike)."""
    return coerce_amount(emi.get("monthly_installment"), "monthly_installment", default=0)


def _emi_requested(emi: dict) -> bool:
    return bool(emi) and (
        _precomputed_installment(emi) > 0
        or emi.get("rate_of_interest") is not None
    )


def build_emi_schedule(grand_total: int, emi: dict, mode: str, now: datetime) -> EmiSchedule:
    rate = max(coerce_decimal(emi.get("rate_of_interest") or 0, "rate_of_interest"), ZERO)
    down_payment = min(coerce_amount(emi.get("down_payment"), "down_payment", default=0), grand_total)

    monthly = _precomputed_installment(emi)
    if monthly > 0:
        # Precomputed by the caller; passed through
        tenure = emi.get("tenure_months")
        tenure = coerce_quantity(tenure, "tenure_months") if tenure not in (None, "") else None
        next_due = coerce_datetime(emi.get("next_due_date"), "next_due_date") or add_months(now, 1)
    else:
        tenure = emi.get("tenure_months")
        tenure = coerce_quantity(tenure, "tenure_months") if tenure not in (None, "") else 1
        interest = to_decimal(grand_total) * rate / HUNDRED
        monthly = round_amount((to_decimal(grand_total) + interest - down_payment) / tenure)
        next_due = add_months(now, 1)

    return EmiSchedule(
        rate_of_interest=rate,
        tenure_months=tenure,
        down_payment=down_payment,
        monthly_installment=monthly,
        total_paid=down_payment,
        next_due_date=next_due,
        installments=[{
            "amount": down_payment,
            "payment_mode": mode,
            "payment_date": now,
            "note": DOWN_PAYMENT_NOTE,
        }],
    )


def _parse_mixed_payments(raw) -> list[tuple[str, int]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("mixed_payments must be a list", details={"field": "mixed_payments"})
    parsed = []
    for entry in raw:
        if not entry:
            continue
        if not isinstance(entry, dict):
            raise ValidationError("mixed_payments entries must be objects", details={"field": "mixed_payments"})
        mode = coerce_choice(entry.get("mode"), "mixed_payments.mode", TENDER_MODES)
        parsed.append((mode, coerce_amount(entry.get("amount"), "mixed_payments.amount", default=0)))
    return parsed


def plan_payment(grand_total: int, payment: dict | None, settings: PricingSettings, now: datetime | None = None) -> PaymentPlan:
    payment = payment or {}
    now = now or utcnow()
    mode = coerce_choice(payment.get("mode"), "payment_mode", PAYMENT_MODES, default=PAYMENT_CASH)
    raw_paid = payment.get("paid_amount")
    paid_amount = min(coerce_amount(raw_paid, "paid_amount", default=0), grand_total)

    emi_input = payment.get("emi") or {}
    if not isinstance(emi_input, dict):
        raise ValidationError("emi must be an object", details={"field": "emi"})

    schedule = None
    if mode in (PAYMENT_EMI, PAYMENT_MIXED) and _emi_requested(emi_input):
        schedule = build_emi_schedule(grand_total, emi_input, mode, now)
    elif mode == PAYMENT_EMI:
        raise ValidationError(
            "EMI payment requires rate_of_interest or monthly_installment",
            details={"field": "emi"},
        )

    mixed = _parse_mixed_payments(payment.get("mixed_payments")) if mode == PAYMENT_MIXED else []
    if mode == PAYMENT_MIXED and raw_paid not in (None, "", 0):
        mixed_total = sum(amount for _, amount in mixed)
        if abs(mixed_total - paid_amount) > settings.mixed_payment_tolerance:
            # Soft check: recorded, not rejected
            current_app.logger.warning(
                "Mixed payment sum %s does not match paid amount %s", mixed_total, paid_amount
            )

    if schedule is not None:
        status = STATUS_EMI_ACTIVE
        paid_amount = schedule.down_payment
    else:
        status = coerce_choice(payment.get("status"), "status", INITIAL_STATUSES, default=STATUS_PAID)
        if status == STATUS_PAID:
            paid_amount = grand_total

    return PaymentPlan(
        mode=mode,
        status=status,
        paid_amount=paid_amount,
        details=optional_text(payment.get("details")),
        mixed_payments=mixed,
        emi=schedule,
    )


def attach_plan(invoice: Invoice, plan: PaymentPlan, recorded_by_user_id: int | None = None) -> None:
    """Copy a settled plan onto a new (unflushed) invoice."""
    invoice.payment_mode = plan.mode
    invoice.payment_details = plan.details
    invoice.paid_amount = plan.paid_amount
    invoice.status = plan.status
    for mode, amount in plan.mixed_payments:
        invoice.mixed_payments.append(MixedPayment(mode=mode, amount=amount))

    if plan.emi is None:
        return
    emi_plan = EmiPlan(
        rate_of_interest=plan.emi.rate_of_interest,
        tenure_months=plan.emi.tenure_months,
        down_payment=plan.emi.down_payment,
        monthly_installment=plan.emi.monthly_installment,
        total_paid=plan.emi.total_paid,
        next_due_date=plan.emi.next_due_date,
    )
    for entry in plan.emi.installments:
        emi_plan.installments.append(EmiInstallment(recorded_by_user_id=recorded_by_user_id, **entry))
    invoice.emi_plan = emi_plan


# =============================================================================
# INSTALLMENT PAYMENTS
# =============================================================================

def pay_emi_installment(
    invoice_id: int,
    amount,
    payment_mode: str = PAYMENT_CASH,
    note: str | None = None,
    user_id: int | None = None,
) -> Invoice:
    """
    Record one installment against an EMI invoice.

    The due date moves one calendar month from its previous value, not from
    today, so early or late payments keep the schedule. The customer's
    balance drops by the amount paid, floored at zero.
    """
    amount = coerce_amount(amount, "amount")
    if amount <= 0:
        raise ValidationError("Installment amount must be positive", details={"field": "amount"})
    payment_mode = coerce_choice(payment_mode, "payment_mode", TENDER_MODES, default=PAYMENT_CASH)
    note = optional_text(note)

    def _op():
        begin_immediate()
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        plan = lock_for_update(db.session.query(EmiPlan).filter_by(invoice_id=invoice.id)).first()
        if not plan:
            raise NotFoundError(f"EMI details not found for invoice {invoice.invoice_number}")

        if invoice.status == STATUS_CANCELLED:
            raise ValidationError("Cannot pay installments on a cancelled invoice")
        if invoice.status == STATUS_EMI_COMPLETED:
            raise ValidationError("EMI plan is already completed")

        now = utcnow()
        plan.installments.append(EmiInstallment(
            amount=amount,
            payment_mode=payment_mode,
            payment_date=now,
            note=note,
            recorded_by_user_id=user_id,
        ))
        plan.total_paid = (plan.total_paid or 0) + amount
        plan.next_due_date = add_months(plan.next_due_date or now, 1)

        if plan.total_paid >= total_payable(invoice.grand_total, plan.rate_of_interest):
            invoice.status = STATUS_EMI_COMPLETED
            current_app.logger.info("EMI plan completed for invoice %s", invoice.invoice_number)

        customer = lock_for_update(db.session.query(Customer).filter_by(id=invoice.customer_id)).first()
        if customer:
            customer.outstanding_balance = max(0, (customer.outstanding_balance or 0) - amount)

        db.session.commit()
        return invoice

    return run_in_transaction(_op)


# =============================================================================
# EMI LISTINGS
# =============================================================================

def summarize_plan(invoice: Invoice) -> dict:
    plan = invoice.emi_plan
    payable = total_payable(invoice.grand_total, plan.rate_of_interest)
    paid_months = sum(1 for inst in plan.installments if inst.note != DOWN_PAYMENT_NOTE)
    return {
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "customer": invoice.customer_name,
        "mobile": invoice.customer_mobile,
        "products": ", ".join(line.name for line in invoice.lines),
        "grand_total": invoice.grand_total,
        "rate_of_interest": float(plan.rate_of_interest or 0),
        "total_payable": round_amount(payable),
        "total_paid": plan.total_paid,
        "remaining": max(0, round_amount(payable - plan.total_paid)),
        "monthly_installment": plan.monthly_installment,
        "tenure_months": plan.tenure_months,
        "paid_months": paid_months,
        "next_due_date": plan.next_due_date,
    }


def list_active_emi_plans(due_before: datetime | None = None) -> list[dict]:
    """EMI-Active invoices, soonest due first."""
    q = (
        db.session.query(Invoice)
        .join(EmiPlan, EmiPlan.invoice_id == Invoice.id)
        .filter(Invoice.status == STATUS_EMI_ACTIVE)
    )
    if due_before is not None:
        q = q.filter(EmiPlan.next_due_date <= due_before)
    invoices = q.order_by(EmiPlan.next_due_date.asc(), Invoice.id.asc()).all()
    return [summarize_plan(inv) for inv in invoices]


def plans_due_within(days: int) -> list[dict]:
    return list_active_emi_plans(due_before=utcnow() + timedelta(days=days))
