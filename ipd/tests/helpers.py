from datetime import date
from decimal import Decimal

from ipd.models import Admission, Bed, BillingRecord, Patient
from ipd.services.admissions import admission_snapshot

_counter = {"patient": 0}


def make_bed(bed_number="1", room_type="icu", status=Bed.AVAILABLE, bed_type="Standard"):
    return Bed.objects.create(room_type=room_type, bed_number=bed_number, bed_type=bed_type, status=status)


def make_admission(bed=None, name="Ravi Kumar", phone="9876543210", status=Admission.ACTIVE, **extra):
    """Admission written straight to the database, bypassing the services."""
    _counter["patient"] += 1
    patient = Patient.objects.create(
        uhid=f"TEST-000000-{_counter['patient']:05d}", name=name, phone=phone, age=42, gender="male",
    )
    fields = {
        "patient": patient,
        "admit_date_key": "2025-06-21",
        "name": name,
        "phone": phone,
        "age": 42,
        "gender": "male",
        "admission_date": date(2025, 6, 21),
        "room_type": bed.room_type if bed else "icu",
        "bed": bed,
        "status": status,
    }
    fields.update(extra)
    admission = Admission.objects.create(**fields)
    BillingRecord.objects.create(admission=admission)
    return admission


def edit_data(admission, **overrides):
    data = admission_snapshot(admission)
    data.pop("version")
    data.pop("payment_mode")
    data.update(overrides)
    return data


def money(value):
    return Decimal(value).quantize(Decimal("0.01"))
