from datetime import date
from decimal import Decimal

from django.test import TestCase

from ipd.models import Doctor, Payment

from .helpers import make_admission, make_bed


class DoctorVisitChargeTest(TestCase):
    def test_ipd_doctor_uses_room_charge(self):
        doctor = Doctor.objects.create(name="Rao", department="IPD", opd_charge=300, ipd_charges={"icu": 800})
        self.assertEqual(doctor.visit_charge_for("icu"), Decimal("800"))
        self.assertEqual(doctor.visit_charge_for("jade"), Decimal("0.00"))

    def test_opd_doctor_uses_opd_charge(self):
        doctor = Doctor.objects.create(name="Shah", department="OPD", opd_charge=300, ipd_charges={"icu": 800})
        self.assertEqual(doctor.visit_charge_for("icu"), 300)

    def test_both_falls_back_to_opd_charge(self):
        doctor = Doctor.objects.create(name="Mehta", department="Both", opd_charge=Decimal("350"), ipd_charges={"icu": 900})
        self.assertEqual(doctor.visit_charge_for("icu"), Decimal("900"))
        self.assertEqual(doctor.visit_charge_for("nicu"), Decimal("350"))


class AdmissionModelTest(TestCase):
    def test_bed_label(self):
        self.assertEqual(make_admission(bed=make_bed("12")).bed_label, "Bed 12")
        self.assertEqual(make_admission().bed_label, "Unknown Bed")

    def test_length_of_stay_until_discharge(self):
        admission = make_admission(admission_date=date(2025, 6, 1))
        admission.discharge_date = admission.admission_date.replace(day=5)
        self.assertEqual(admission.length_of_stay(), 4)

    def test_signed_amount(self):
        self.assertEqual(Payment(amount=Decimal("300"), type=Payment.REFUND).signed_amount, Decimal("-300"))
        self.assertEqual(Payment(amount=Decimal("300"), type=Payment.ADVANCE).signed_amount, Decimal("300"))
