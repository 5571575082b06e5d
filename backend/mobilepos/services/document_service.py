# Overview: Service-layer operations for document numbering; daily sequential invoice numbers.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..config import PricingSettings
from ..models import Invoice, InvoiceSequence
from .concurrency import lock_for_update
from mobilepos.time_utils import utcnow


def date_prefix(settings: PricingSettings, now: datetime | None = None) -> str:
    now = now or utcnow()
    return f"{settings.invoice_number_prefix}-{now:%Y%m%d}"


def parse_suffix(invoice_number: str | None) -> int:
    if not invoice_number:
        return 0
    tail = invoice_number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


def last_used_suffix(prefix: str) -> int:
    """
    Highest suffix already issued under prefix.

    Ordering by length first keeps "1000" above "999" once a day outgrows
    the zero padding.
    """
    last = (
        db.session.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}-%"))
        .order_by(func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
        .limit(1)
        .scalar()
    )
    return parse_suffix(last)


def next_invoice_number(settings: PricingSettings, now: datetime | None = None) -> str:
    """
    Allocate the next number for today, e.g. INV-20261018-007.

    Must run inside the caller's transaction. The per-day counter row is
    locked and advanced; it never hands out a number at or below one that
    already exists. A lost race on the counter row or on
    invoices.invoice_number raises IntegrityError, which the caller retries
    with a fresh read.
    """
    prefix = date_prefix(settings, now)
    candidate = last_used_suffix(prefix) + 1

    seq = lock_for_update(db.session.query(InvoiceSequence).filter_by(date_prefix=prefix)).first()
    if seq:
        next_num = max(seq.next_number, candidate)
        seq.next_number = next_num + 1
    else:
        next_num = candidate
        db.session.add(InvoiceSequence(date_prefix=prefix, next_number=next_num + 1))
    db.session.flush()

    return f"{prefix}-{next_num:0{settings.invoice_sequence_pad}d}"
