"""WhatsApp notifications.

Messages are fire-and-forget: delivery problems are logged and the
calling ledger or admission operation carries on.
"""
import logging

import requests
from django.conf import settings

from .billing import format_rupees

logger = logging.getLogger(__name__)


def _recipient(phone):
    digits = "".join(ch for ch in str(phone or "") if ch.isdigit())
    if not digits:
        return None
    return f"{settings.WHATSAPP_COUNTRY_CODE}{digits}"


def send_whatsapp_message(phone, message):
    if not settings.WHATSAPP_ENABLED:
        logger.debug("WhatsApp disabled, not messaging %s", phone)
        return False

    number = _recipient(phone)
    if number is None:
        logger.warning("Skipping WhatsApp message: no phone number")
        return False

    payload = {
        "token": settings.WHATSAPP_TOKEN,
        "number": number,
        "message": message,
    }
    try:
        response = requests.post(
            settings.WHATSAPP_API_URL, json=payload, timeout=settings.WHATSAPP_TIMEOUT
        )
    except requests.RequestException as exc:
        logger.error("WhatsApp message to %s failed: %s", number, exc)
        return False

    if not response.ok:
        logger.warning("WhatsApp API returned %s for %s", response.status_code, number)
        return False

    logger.info("WhatsApp message sent to %s", number)
    return True


def payment_message(name, amount, total_deposit, entry_type):
    hospital = settings.HOSPITAL_NAME
    if entry_type == "refund":
        return (
            f"Hello {name}, a refund of Rs {format_rupees(amount)} has been processed "
            f"at {hospital}. Your updated total deposit is Rs {format_rupees(total_deposit)}."
        )
    return (
        f"Hello {name}, we have received your payment of Rs {format_rupees(amount)} "
        f"at {hospital}. Your updated total deposit is Rs {format_rupees(total_deposit)}. "
        f"Thank you for choosing us!"
    )


def send_payment_notification(phone, name, amount, total_deposit, entry_type):
    return send_whatsapp_message(phone, payment_message(name, amount, total_deposit, entry_type))


def send_admission_notifications(admission):
    """Tell the patient and their relative about a new admission."""
    hospital = settings.HOSPITAL_NAME
    room = admission.get_room_type_display() or "-"
    when = f"{admission.admission_date:%d %b %Y} {admission.admission_time}".strip()

    sent = []
    patient_text = (
        f"Hello {admission.name}, you have been admitted to {hospital} on {when}. "
        f"Room: {room}, {admission.bed_label}. We wish you a speedy recovery."
    )
    sent.append(send_whatsapp_message(admission.phone, patient_text))

    if admission.relative_phone:
        relative_text = (
            f"Hello {admission.relative_name or 'there'}, {admission.name} has been admitted "
            f"to {hospital} on {when}. Room: {room}, {admission.bed_label}."
        )
        sent.append(send_whatsapp_message(admission.relative_phone, relative_text))
    return sent
