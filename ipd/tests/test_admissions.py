from datetime import date, datetime
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from ipd.exceptions import BedAlreadyOccupied, IPDError, StaleRecordError
from ipd.models import Admission, AdmissionChange, Bed, Patient, Payment
from ipd.services import admissions

from .helpers import edit_data, make_admission, make_bed, money


def patient_details(**overrides):
    details = {"name": "Asha Patil", "phone": "9876500000", "age": 35, "gender": "female", "address": "Pune"}
    details.update(overrides)
    return details


def admission_details(bed, **overrides):
    details = {
        "relative_name": "Suresh Patil",
        "relative_phone": "9876511111",
        "admission_date": date(2025, 6, 21),
        "admission_time": "10:30",
        "admission_source": "opd",
        "admission_type": "general",
        "room_type": bed.room_type if bed else "icu",
        "bed": bed,
    }
    details.update(overrides)
    return details


class CreateAdmissionTest(TestCase):
    def setUp(self):
        self.bed = make_bed("1")

    def test_new_patient_is_registered_and_admitted(self):
        admission = admissions.create_admission(
            patient_details(), admission_details(self.bed), deposit=1000, payment_type="online", editor="desk",
        )

        self.assertTrue(admission.patient.uhid.startswith(f"GMH-{timezone.localdate():%y%m%d}-"))
        self.assertEqual(admission.admit_date_key, "2025-06-21")
        self.assertEqual(admission.status, Admission.ACTIVE)
        self.assertEqual(admission.name, "Asha Patil")

        self.bed.refresh_from_db()
        self.assertEqual(self.bed.status, Bed.OCCUPIED)

        billing = admission.billing
        self.assertEqual(billing.total_deposit, money("1000"))
        payment = billing.payments.get()
        self.assertEqual(payment.type, Payment.ADVANCE)
        self.assertEqual(payment.payment_type, "online")

    def test_no_deposit_no_payment(self):
        admission = admissions.create_admission(patient_details(), admission_details(self.bed))
        self.assertEqual(admission.billing.payments.count(), 0)
        self.assertEqual(admission.billing.total_deposit, money("0"))

    def test_existing_patient_is_reused(self):
        first = admissions.create_admission(patient_details(), admission_details(self.bed))
        admissions.discharge_admission(first, editor="desk")

        again = admissions.create_admission(
            patient_details(uhid=first.patient.uhid, phone="9000000000"),
            admission_details(self.bed, admission_date=date(2025, 7, 1)),
        )

        self.assertEqual(again.patient, first.patient)
        self.assertEqual(Patient.objects.count(), 1)
        self.assertEqual(Patient.objects.get().phone, "9000000000")
        self.assertEqual(again.admit_date_key, "2025-07-01")

    def test_unknown_uhid(self):
        with self.assertRaises(IPDError):
            admissions.create_admission(patient_details(uhid="GMH-000000-99999"), admission_details(self.bed))

    def test_occupied_bed_rolls_everything_back(self):
        admissions.create_admission(patient_details(), admission_details(self.bed))

        with self.assertRaises(BedAlreadyOccupied):
            admissions.create_admission(patient_details(name="Late Comer"), admission_details(self.bed))

        self.assertEqual(Admission.objects.count(), 1)
        self.assertFalse(Patient.objects.filter(name="Late Comer").exists())

    def test_held_bed_is_refused_even_when_marked_available(self):
        admissions.create_admission(patient_details(), admission_details(self.bed))
        Bed.objects.filter(pk=self.bed.pk).update(status=Bed.AVAILABLE)

        with self.assertRaises(BedAlreadyOccupied):
            admissions.create_admission(patient_details(name="Late Comer"), admission_details(self.bed))

        self.assertEqual(Admission.objects.filter(bed=self.bed, status=Admission.ACTIVE).count(), 1)

    @mock.patch("ipd.services.admissions.send_admission_notifications")
    def test_notifications_go_out_after_commit(self, send):
        with self.captureOnCommitCallbacks(execute=True):
            admission = admissions.create_admission(patient_details(), admission_details(self.bed))
        send.assert_called_once_with(admission)


class DetectChangesTest(TestCase):
    def test_normalised_comparison(self):
        original = {"name": "Ravi", "age": 42, "admission_date": date(2025, 6, 21), "deposit": money("1000")}
        updated = {
            "name": " Ravi ",
            "age": "42",
            "admission_date": timezone.make_aware(datetime(2025, 6, 21, 18, 0)),
            "deposit": "1000",
        }
        self.assertEqual(admissions.detect_changes(original, updated), [])

    def test_reports_old_and_new_values(self):
        original = {"name": "Ravi", "relative_name": None, "admission_date": date(2025, 6, 21)}
        updated = {"name": "Ravi K", "relative_name": "Meena", "admission_date": "2025-06-22"}

        changes = admissions.detect_changes(original, updated)

        self.assertEqual(changes, [
            {"field": "name", "oldValue": "Ravi", "newValue": "Ravi K"},
            {"field": "relative_name", "oldValue": "", "newValue": "Meena"},
            {"field": "admission_date", "oldValue": date(2025, 6, 21), "newValue": "2025-06-22"},
        ])

    def test_ignores_fields_not_submitted(self):
        self.assertEqual(admissions.detect_changes({"name": "Ravi"}, {}), [])


class UpdateAdmissionTest(TestCase):
    def setUp(self):
        self.b1 = make_bed("B1")
        self.b2 = make_bed("B2")
        self.admission = admissions.create_admission(
            patient_details(), admission_details(self.b1), deposit=1000, payment_type="cash",
        )

    def test_bed_reassignment(self):
        changes = admissions.update_admission(self.admission, edit_data(self.admission, bed=self.b2), editor="nurse")

        self.b1.refresh_from_db()
        self.b2.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.AVAILABLE)
        self.assertEqual(self.b2.status, Bed.OCCUPIED)
        self.assertEqual(self.admission.bed, self.b2)
        self.assertEqual(changes, [{"field": "bed", "oldValue": str(self.b1.pk), "newValue": str(self.b2.pk)}])

        entry = AdmissionChange.objects.get()
        self.assertEqual(entry.outcome, AdmissionChange.APPLIED)
        self.assertEqual(entry.edited_by, "nurse")
        self.assertEqual(entry.patient_uhid, self.admission.patient.uhid)
        self.assertEqual(entry.changes[0]["field"], "bed")

    def test_no_changes(self):
        version = self.admission.version
        self.assertEqual(admissions.update_admission(self.admission, edit_data(self.admission)), [])
        self.assertFalse(AdmissionChange.objects.exists())
        self.admission.refresh_from_db()
        self.assertEqual(self.admission.version, version)

    def test_patient_fields_follow_the_edit(self):
        admissions.update_admission(self.admission, edit_data(self.admission, phone="9111111111", age=36))

        self.assertEqual(self.admission.phone, "9111111111")
        self.assertEqual(self.admission.age, 36)
        self.assertEqual(self.admission.patient.phone, "9111111111")
        self.assertEqual(self.admission.last_modified_by, "")

    def test_deposit_change_is_booked_as_payment(self):
        admissions.update_admission(self.admission, edit_data(self.admission, deposit=money("1500")))

        billing = self.admission.billing
        billing.refresh_from_db()
        self.assertEqual(billing.total_deposit, money("1500"))
        synthetic = billing.payments.get(amount_type="deposit")
        self.assertEqual(synthetic.type, Payment.ADVANCE)
        self.assertEqual(synthetic.amount, money("500"))
        self.assertEqual(billing.summary()["total_deposit"], money("1500"))

    def test_stale_version_is_refused(self):
        loaded_version = self.admission.version
        admissions.update_admission(self.admission, edit_data(self.admission, relative_name="Other"))

        with self.assertRaises(StaleRecordError):
            admissions.update_admission(
                self.admission, edit_data(self.admission, name="Lost Update"), expected_version=loaded_version,
            )

        self.admission.refresh_from_db()
        self.assertEqual(self.admission.name, "Asha Patil")
        self.assertEqual(AdmissionChange.objects.first().outcome, AdmissionChange.CONFLICT)

    def test_failed_bed_move_rolls_back_and_is_logged(self):
        make_admission(bed=self.b2)
        self.b2.status = Bed.OCCUPIED
        self.b2.save()

        with self.assertRaises(BedAlreadyOccupied):
            admissions.update_admission(
                self.admission, edit_data(self.admission, bed=self.b2, deposit=money("2000")),
            )

        self.b1.refresh_from_db()
        self.admission.refresh_from_db()
        self.assertEqual(self.b1.status, Bed.OCCUPIED)
        self.assertEqual(self.admission.bed, self.b1)
        self.assertEqual(self.admission.billing.total_deposit, money("1000"))
        entry = AdmissionChange.objects.get()
        self.assertEqual(entry.outcome, AdmissionChange.FAILED)
        self.assertIn("occupied", entry.detail)


class DischargeTest(TestCase):
    def test_discharge_releases_bed(self):
        bed = make_bed("1")
        admission = admissions.create_admission(patient_details(), admission_details(bed))

        admissions.discharge_admission(admission, editor="desk")

        bed.refresh_from_db()
        self.assertEqual(bed.status, Bed.AVAILABLE)
        self.assertEqual(admission.status, Admission.DISCHARGED)
        self.assertIsNotNone(admission.discharge_date)
        # the bed stays on record for the invoice
        self.assertEqual(admission.bed, bed)
        self.assertEqual(AdmissionChange.objects.get().change_type, "discharge")

    def test_cannot_discharge_twice(self):
        admission = admissions.create_admission(patient_details(), admission_details(make_bed("1")))
        admissions.discharge_admission(admission)
        with self.assertRaises(IPDError):
            admissions.discharge_admission(admission)
