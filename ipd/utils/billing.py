"""Pure billing calculations shared by the ledger, views and invoice."""
import math
from datetime import date, datetime
from decimal import Decimal

from django.utils import timezone

ZERO = Decimal("0.00")

SERVICE = "service"
DOCTOR_VISIT = "doctorvisit"
ADVANCE = "advance"
REFUND = "refund"


def _field(entry, name):
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name, None)


def _money(value):
    if value in (None, ""):
        return ZERO
    return Decimal(str(value))


def _total(entries, **match):
    total = ZERO
    for entry in entries:
        if all(_field(entry, key) == value for key, value in match.items()):
            total += _money(_field(entry, "amount"))
    return total


def compute_summary(services, payments, discount=0):
    """
    Totals for one billing record.

    ``services`` and ``payments`` may be model instances or plain dicts.
    The deposit is derived from the payments themselves, so the result
    never depends on the cached ``total_deposit`` column.
    """
    services = list(services)
    payments = list(payments)

    service_total = _total(services, type=SERVICE)
    consultant_total = _total(services, type=DOCTOR_VISIT)
    gross_total = service_total + consultant_total
    discount = _money(discount)
    net_total = gross_total - discount

    total_advances = _total(payments, type=ADVANCE)
    total_refunds = _total(payments, type=REFUND)
    total_deposit = total_advances - total_refunds

    if gross_total > 0:
        discount_percentage = (discount / gross_total * 100).quantize(Decimal("0.1"))
    else:
        discount_percentage = Decimal("0.0")

    return {
        "service_total": service_total,
        "consultant_total": consultant_total,
        "gross_total": gross_total,
        "discount": discount,
        "discount_percentage": discount_percentage,
        "net_total": net_total,
        "total_advances": total_advances,
        "total_refunds": total_refunds,
        "total_deposit": total_deposit,
        "due": net_total - total_deposit,
    }


def group_services(services):
    """Collapse per-unit service rows into ``(service_name, amount)`` lines."""
    groups = {}
    for entry in services:
        if _field(entry, "type") != SERVICE:
            continue
        amount = _money(_field(entry, "amount"))
        key = (_field(entry, "service_name"), amount)
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                "service_name": key[0],
                "unit_amount": amount,
                "quantity": 0,
                "total_amount": ZERO,
            }
        group["quantity"] += 1
        group["total_amount"] += amount
    return list(groups.values())


def group_consultant_charges(services):
    groups = {}
    for entry in services:
        if _field(entry, "type") != DOCTOR_VISIT:
            continue
        doctor = _field(entry, "doctor_name") or "Unknown"
        amount = _money(_field(entry, "amount"))
        created_at = _field(entry, "created_at")
        group = groups.get(doctor)
        if group is None:
            group = groups[doctor] = {
                "doctor_name": doctor,
                "unit_amount": amount,
                "visits": 0,
                "total_amount": ZERO,
                "last_visit": created_at,
            }
        group["visits"] += 1
        group["total_amount"] += amount
        if created_at and (group["last_visit"] is None or created_at > group["last_visit"]):
            group["last_visit"] = created_at
    return list(groups.values())


def _as_date(value):
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    return value


def length_of_stay(start, end=None):
    """Whole days between admission and discharge (or today)."""
    start = _as_date(start)
    end = _as_date(end) if end else timezone.localdate()
    return abs((end - start).days)


_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]
_SCALES = ["", "Thousand", "Million", "Billion"]


def _below_thousand(number):
    words = []
    if number >= 100:
        words.append(f"{_ONES[number // 100]} Hundred")
        number %= 100
    if number >= 20:
        words.append(_TENS[number // 10])
        number %= 10
    if number:
        words.append(_ONES[number])
    return " ".join(words)


def amount_in_words(value):
    """``1250`` -> ``"One Thousand Two Hundred Fifty"``. Paise are dropped."""
    number = math.floor(abs(_money(value)))
    if number == 0:
        return "Zero"

    parts = []
    scale = 0
    while number > 0 and scale < len(_SCALES):
        chunk = number % 1000
        if chunk:
            words = _below_thousand(chunk)
            if _SCALES[scale]:
                words = f"{words} {_SCALES[scale]}"
            parts.insert(0, words)
        number //= 1000
        scale += 1
    return " ".join(parts)


def format_rupees(value):
    """``1000`` -> ``"1,000"``, ``1250.5`` -> ``"1,250.50"``."""
    amount = _money(value)
    if amount == amount.to_integral_value():
        return f"{amount:,.0f}"
    return f"{amount:,.2f}"
