"""Admission records: create, diff, reconcile and discharge."""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from django.db import models, transaction
from django.utils import timezone

from ipd.exceptions import BedNotFound, IPDError, StaleRecordError
from ipd.models import Admission, AdmissionChange, BillingRecord, Patient, Payment
from ipd.utils import log_admission_change
from ipd.utils.notify import send_admission_notifications

from . import beds, ledger
from .sequence import next_uhid

logger = logging.getLogger(__name__)

PATIENT_FIELDS = ("name", "phone", "age", "gender", "address")
ADMISSION_FIELDS = (
    "relative_name",
    "relative_phone",
    "relative_address",
    "admission_date",
    "admission_time",
    "admission_source",
    "admission_type",
    "room_type",
    "bed",
    "doctor",
    "refer_doctor",
)
TRACKED_FIELDS = PATIENT_FIELDS + ADMISSION_FIELDS + ("deposit",)
NUMERIC_FIELDS = {"age", "deposit"}
DATE_FIELDS = {"admission_date"}
OPTIONAL_FIELDS = {"age", "bed", "doctor", "admission_date"}


def admit_date_key(value):
    """Calendar day an admission is filed under, as ``YYYY-MM-DD``."""
    return _day(value).isoformat()


def _day(value):
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            value = timezone.localtime(value)
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _normalize(field, value):
    if isinstance(value, models.Model):
        return str(value.pk)
    if value is None:
        return ""
    if field in NUMERIC_FIELDS:
        try:
            return format(Decimal(str(value).strip() or 0).normalize(), "f")
        except InvalidOperation:
            return str(value).strip()
    return str(value).strip()


def _plain(value):
    if isinstance(value, models.Model):
        return str(value.pk)
    if value is None:
        return ""
    return value


def _clean(field, value):
    if field in OPTIONAL_FIELDS:
        return value if value != "" else None
    if value is None:
        return ""
    return value


def admission_snapshot(admission):
    """Values the edit form starts from, keyed like ``detect_changes`` expects."""
    snapshot = {field: getattr(admission, field) for field in PATIENT_FIELDS + ADMISSION_FIELDS}
    billing = getattr(admission, "billing", None)
    snapshot["deposit"] = billing.total_deposit if billing else Decimal("0.00")
    snapshot["payment_mode"] = billing.payment_mode if billing else ""
    snapshot["version"] = admission.version
    return snapshot


def detect_changes(original, updated):
    """
    Compare an edit against the snapshot it started from.

    Only fields present in ``updated`` are compared. Values are compared as
    trimmed strings (numbers canonicalised) and dates at day granularity, so
    ``30`` and ``"30"`` or two timestamps on the same day are not changes.
    """
    changes = []
    for field in TRACKED_FIELDS:
        if field not in updated:
            continue
        old, new = original.get(field), updated[field]
        if field in DATE_FIELDS:
            same = _day(old) == _day(new)
        else:
            same = _normalize(field, old) == _normalize(field, new)
        if not same:
            changes.append({"field": field, "oldValue": _plain(old), "newValue": _plain(new)})
    return changes


# ==============================
# CREATE
# ==============================

def create_admission(patient_data, admission_data, deposit=0, payment_type="cash", editor=""):
    """
    Admit a patient.

    ``patient_data`` with a ``uhid`` reuses that patient, otherwise a new
    patient is registered under a fresh UHID. The admission, its billing
    record, the bed allocation and the opening advance are written in one
    transaction.
    """
    uhid = (patient_data.get("uhid") or "").strip()
    patient = None
    if uhid:
        try:
            patient = Patient.objects.get(uhid=uhid)
        except Patient.DoesNotExist:
            raise IPDError(f"No patient with UHID {uhid}") from None
    else:
        # Issued outside the transaction below so contention retries get a fresh one
        uhid = next_uhid()

    patient_values = {
        field: _clean(field, patient_data[field]) for field in PATIENT_FIELDS if field in patient_data
    }
    admission_values = {
        field: _clean(field, admission_data[field])
        for field in ADMISSION_FIELDS
        if field in admission_data
    }
    if admission_values.get("admission_date") is None:
        admission_values["admission_date"] = timezone.localdate()
    admission_values["admission_date"] = _day(admission_values["admission_date"])

    bed = admission_values.get("bed")
    if bed is not None:
        if not admission_values.get("room_type"):
            admission_values["room_type"] = bed.room_type
        if admission_values["room_type"] != bed.room_type:
            raise BedNotFound(admission_values["room_type"], bed.pk)

    deposit = ledger.parse_amount(deposit or 0, "Deposit")

    with transaction.atomic():
        if patient is None:
            patient = Patient.objects.create(uhid=uhid, **patient_values)
        elif patient_values:
            for field, value in patient_values.items():
                setattr(patient, field, value)
            patient.save(update_fields=list(patient_values) + ["updated_at"])

        denormalized = {field: getattr(patient, field) for field in PATIENT_FIELDS}
        admission = Admission.objects.create(
            patient=patient,
            admit_date_key=admit_date_key(admission_values["admission_date"]),
            last_modified_by=editor or "",
            **denormalized,
            **admission_values,
        )

        if bed is not None:
            beds.allocate(bed.room_type, bed.pk, admission)

        billing = BillingRecord.objects.create(
            admission=admission, payment_mode=payment_type if deposit else ""
        )
        if deposit > 0:
            ledger.record_payment(billing, deposit, payment_type, Payment.ADVANCE, "advance")

    logger.info("Admitted %s as IPD %s (%s)", patient, admission.pk, admission.bed_label)
    transaction.on_commit(lambda: send_admission_notifications(admission))
    return admission


# ==============================
# EDIT & DISCHARGE
# ==============================

def _check_version(current, expected_version):
    if expected_version is not None and current.version != int(expected_version):
        raise StaleRecordError(current, expected_version, current.version)


def update_admission(admission, data, editor="", expected_version=None):
    """
    Apply an edit and reconcile beds and the deposit with it.

    The bed swap, the field write and the deposit adjustment share one
    transaction. The change log entry is written whatever the outcome.
    Returns the list of changes, empty when nothing differed.
    """
    changes = detect_changes(admission_snapshot(admission), data)
    if not changes:
        logger.info("IPD %s: no changes detected", admission.pk)
        return []

    changed = [change["field"] for change in changes]
    outcome, detail = AdmissionChange.APPLIED, ""
    try:
        with transaction.atomic():
            current = Admission.objects.select_for_update().get(pk=admission.pk)
            _check_version(current, expected_version)

            new_bed = _clean("bed", data["bed"]) if "bed" in changed else current.bed
            if "bed" in changed or "room_type" in changed:
                room_type = data.get("room_type", current.room_type)
                if new_bed is not None and new_bed.room_type != room_type:
                    raise BedNotFound(room_type, new_bed.pk)

            if "bed" in changed:
                if not current.is_active:
                    raise IPDError("Cannot move a discharged admission to another bed")
                if current.bed is not None:
                    beds.release(current.bed.room_type, current.bed_id, admission=current)
                if new_bed is not None:
                    beds.allocate(new_bed.room_type, new_bed.pk, current)

            field_names = [field for field in changed if field != "deposit"]
            for field in field_names:
                setattr(current, field, _clean(field, data[field]))
            if "admission_date" in field_names:
                current.admission_date = _day(current.admission_date)
            current.version += 1
            current.last_modified_by = editor or ""
            current.save(update_fields=field_names + ["version", "last_modified_by", "updated_at"])

            patient_fields = [field for field in field_names if field in PATIENT_FIELDS]
            if patient_fields:
                patient = current.patient
                for field in patient_fields:
                    setattr(patient, field, getattr(current, field))
                patient.save(update_fields=patient_fields + ["updated_at"])

            if "deposit" in changed:
                billing, _ = BillingRecord.objects.get_or_create(admission=current)
                ledger.adjust_deposit(billing, data["deposit"], data.get("payment_mode", ""))
    except StaleRecordError as exc:
        outcome, detail = AdmissionChange.CONFLICT, str(exc)
        raise
    except Exception as exc:
        outcome, detail = AdmissionChange.FAILED, str(exc)
        raise
    finally:
        log_admission_change(admission, changes, editor, outcome=outcome, detail=detail)
        logger.info("IPD %s edit by %s: %s (%s)", admission.pk, editor or "unknown", outcome, ", ".join(changed))

    admission.refresh_from_db()
    return changes


def discharge_admission(admission, editor="", discharge_date=None, expected_version=None):
    """Close an active admission and give its bed back."""
    if not admission.is_active:
        raise IPDError(f"IPD {admission.pk} is already discharged")

    discharge_date = discharge_date or timezone.now()
    changes = [
        {"field": "status", "oldValue": Admission.ACTIVE, "newValue": Admission.DISCHARGED},
        {"field": "discharge_date", "oldValue": "", "newValue": discharge_date},
    ]
    outcome, detail = AdmissionChange.APPLIED, ""
    try:
        with transaction.atomic():
            current = Admission.objects.select_for_update().get(pk=admission.pk)
            _check_version(current, expected_version)
            if not current.is_active:
                raise IPDError(f"IPD {admission.pk} is already discharged")

            if current.bed is not None:
                beds.release(current.bed.room_type, current.bed_id, admission=current)

            current.status = Admission.DISCHARGED
            current.discharge_date = discharge_date
            current.version += 1
            current.last_modified_by = editor or ""
            current.save(update_fields=[
                "status", "discharge_date", "version", "last_modified_by", "updated_at",
            ])
    except StaleRecordError as exc:
        outcome, detail = AdmissionChange.CONFLICT, str(exc)
        raise
    except Exception as exc:
        outcome, detail = AdmissionChange.FAILED, str(exc)
        raise
    finally:
        log_admission_change(admission, changes, editor, change_type="discharge",
                             outcome=outcome, detail=detail)

    logger.info("Discharged IPD %s", admission.pk)
    admission.refresh_from_db()
    return admission
