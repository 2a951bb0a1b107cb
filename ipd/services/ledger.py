"""Billing ledger writes.

Every write moves the record's ``version`` forward. Payment writes adjust
``total_deposit`` in the same transaction as the payment row, so the cached
deposit always equals advances minus refunds.
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from ipd.exceptions import LedgerError, PaymentNotFound
from ipd.models import PAYMENT_TYPE_CHOICES, BillingRecord, Payment, ServiceCharge
from ipd.utils.billing import compute_summary
from ipd.utils.notify import send_payment_notification

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def parse_amount(value, label="Amount"):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise LedgerError(f"{label} must be a number, got {value!r}") from None
    if not amount.is_finite():
        raise LedgerError(f"{label} must be a number, got {value!r}")
    if amount < 0:
        raise LedgerError(f"{label} cannot be negative")
    return amount.quantize(CENTS)


def _count(value, label):
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise LedgerError(f"{label} must be a whole number, got {value!r}") from None
    if count < 1:
        raise LedgerError(f"{label} must be at least 1")
    return count


def _bump(billing, **updates):
    BillingRecord.objects.filter(pk=billing.pk).update(
        version=F("version") + 1, updated_at=timezone.now(), **updates
    )
    billing.refresh_from_db(fields=["version", "total_deposit", "discount", "updated_at"])


def _append_charges(billing, charge_type, service_name, doctor_name, amount, count):
    now = timezone.now()
    with transaction.atomic():
        charges = ServiceCharge.objects.bulk_create([
            ServiceCharge(
                billing=billing,
                service_name=service_name,
                doctor_name=doctor_name,
                type=charge_type,
                amount=amount,
                created_at=now,
            )
            for _ in range(count)
        ])
        _bump(billing)
    return charges


# ==============================
# SERVICE & CONSULTANT CHARGES
# ==============================

def add_service_charge(billing, service_name, amount, quantity=1):
    """Append ``quantity`` unit rows for a hospital service."""
    name = (service_name or "").strip()
    if not name:
        raise LedgerError("Service name is required")
    amount = parse_amount(amount)
    quantity = _count(quantity, "Quantity")

    charges = _append_charges(billing, ServiceCharge.SERVICE, name, "", amount, quantity)
    logger.info("Billing %s: added %s x %s @ %s", billing.pk, quantity, name, amount)
    return charges


def add_bulk_services(billing, items):
    """Add several services at once; either all of them land or none do."""
    added = []
    with transaction.atomic():
        for item in items:
            added.extend(add_service_charge(
                billing, item.get("service_name"), item.get("amount"), item.get("quantity", 1)
            ))
    return added


def add_consultant_charge(billing, doctor_name, amount, visit_times=1):
    doctor = (doctor_name or "").strip()
    if not doctor:
        raise LedgerError("Doctor name is required")
    amount = parse_amount(amount)
    visit_times = _count(visit_times, "Visit count")

    charges = _append_charges(
        billing,
        ServiceCharge.DOCTOR_VISIT,
        f"Consultant Charge: Dr. {doctor}",
        doctor,
        amount,
        visit_times,
    )
    logger.info("Billing %s: added %s visit(s) by Dr. %s @ %s", billing.pk, visit_times, doctor, amount)
    return charges


def remove_service_charge(billing, service_name, amount):
    """Remove every unit of ``service_name`` billed at exactly ``amount``."""
    amount = parse_amount(amount)
    with transaction.atomic():
        removed, _ = billing.services.filter(
            type=ServiceCharge.SERVICE, service_name=service_name, amount=amount
        ).delete()
        if removed:
            _bump(billing)
    logger.info("Billing %s: removed %s x %s @ %s", billing.pk, removed, service_name, amount)
    return removed


def remove_consultant_charges(billing, doctor_name):
    with transaction.atomic():
        removed, _ = billing.services.filter(
            type=ServiceCharge.DOCTOR_VISIT, doctor_name=doctor_name
        ).delete()
        if removed:
            _bump(billing)
    logger.info("Billing %s: removed %s visit(s) by Dr. %s", billing.pk, removed, doctor_name)
    return removed


# ==============================
# PAYMENTS, DEPOSIT & DISCOUNT
# ==============================

def payment_timestamp(day=None):
    """Date from ``day`` (if given), time of day from now."""
    now = timezone.localtime()
    if day is None:
        return now
    if isinstance(day, datetime):
        day = timezone.localtime(day).date() if timezone.is_aware(day) else day.date()
    return timezone.make_aware(datetime.combine(day, now.time().replace(tzinfo=None)))


def record_payment(billing, amount, payment_type, entry_type=Payment.ADVANCE,
                   amount_type="advance", through="", date=None, notify=False):
    amount = parse_amount(amount)
    if amount == 0:
        raise LedgerError("Payment amount must be greater than zero")
    if entry_type not in (Payment.ADVANCE, Payment.REFUND):
        raise LedgerError(f"Unknown payment type {entry_type!r}")
    if payment_type not in dict(PAYMENT_TYPE_CHOICES):
        raise LedgerError(f"Unknown payment mode {payment_type!r}")
    if amount_type not in dict(Payment.AMOUNT_TYPE_CHOICES):
        raise LedgerError(f"Unknown amount type {amount_type!r}")

    signed = amount if entry_type == Payment.ADVANCE else -amount
    with transaction.atomic():
        payment = Payment.objects.create(
            billing=billing,
            amount=amount,
            payment_type=payment_type,
            type=entry_type,
            amount_type=amount_type,
            through=through or "",
            date=payment_timestamp(date),
        )
        _bump(billing, total_deposit=F("total_deposit") + signed)

    logger.info(
        "Billing %s: %s of %s via %s, deposit now %s",
        billing.pk, entry_type, amount, payment_type, billing.total_deposit,
    )

    if notify:
        admission = billing.admission
        deposit = billing.total_deposit
        transaction.on_commit(lambda: send_payment_notification(
            admission.phone, admission.name, amount, deposit, entry_type
        ))
    return payment


def delete_payment(billing, payment_id):
    """Drop a payment and undo its effect on the deposit."""
    with transaction.atomic():
        try:
            payment = billing.payments.select_for_update().get(pk=payment_id)
        except (Payment.DoesNotExist, ValidationError, ValueError):
            raise PaymentNotFound(f"Payment {payment_id} not found on billing {billing.pk}") from None

        signed = payment.signed_amount
        payment.delete()
        _bump(billing, total_deposit=F("total_deposit") - signed)

    logger.info("Billing %s: deleted payment %s (%s), deposit now %s",
                billing.pk, payment_id, signed, billing.total_deposit)
    return payment


def set_discount(billing, amount):
    discount = parse_amount(amount, "Discount")
    gross = compute_summary(billing.services.all(), [], 0)["gross_total"]
    if discount > gross:
        logger.warning("Billing %s: discount %s exceeds gross total %s", billing.pk, discount, gross)

    with transaction.atomic():
        _bump(billing, discount=discount)
    logger.info("Billing %s: discount set to %s", billing.pk, discount)
    return billing


def adjust_deposit(billing, new_total, payment_type=""):
    """
    Move the deposit to ``new_total`` by booking the difference as a payment.

    Returns the synthetic payment, or ``None`` when the deposit already
    matches.
    """
    new_total = parse_amount(new_total, "Deposit")
    with transaction.atomic():
        locked = BillingRecord.objects.select_for_update().get(pk=billing.pk)
        delta = new_total - locked.total_deposit
        if delta == 0:
            return None

        payment = Payment.objects.create(
            billing=locked,
            amount=abs(delta),
            payment_type=payment_type or locked.payment_mode or "cash",
            type=Payment.ADVANCE if delta > 0 else Payment.REFUND,
            amount_type="deposit",
            date=timezone.now(),
        )
        _bump(billing, total_deposit=F("total_deposit") + delta)

    logger.info("Billing %s: deposit adjusted by %s to %s", billing.pk, delta, billing.total_deposit)
    return payment


def deposit_drift():
    """``(billing, cached, actual)`` for every record whose deposit cache is off."""
    drift = []
    for billing in BillingRecord.objects.prefetch_related("payments").order_by("pk"):
        actual = compute_summary([], billing.payments.all())["total_deposit"]
        if actual != billing.total_deposit:
            drift.append((billing, billing.total_deposit, actual))
    return drift
