import uuid
from datetime import date
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone

from ipd.exceptions import LedgerError, PaymentNotFound
from ipd.models import BillingRecord, Payment, ServiceCharge
from ipd.services import ledger

from .helpers import make_admission, make_bed, money


class LedgerTestCase(TestCase):
    def setUp(self):
        self.admission = make_admission(bed=make_bed("1"))
        self.billing = self.admission.billing

    def assertDepositConsistent(self):
        self.billing.refresh_from_db()
        self.assertEqual(self.billing.total_deposit, self.billing.summary()["total_deposit"])


class ServiceChargeTest(LedgerTestCase):
    def test_quantity_expands_into_unit_rows(self):
        charges = ledger.add_service_charge(self.billing, "Oxygen", 400, quantity=3)

        self.assertEqual(len(charges), 3)
        rows = self.billing.services.all()
        self.assertEqual(rows.count(), 3)
        self.assertTrue(all(row.amount == money("400") for row in rows))
        self.assertTrue(all(row.type == ServiceCharge.SERVICE for row in rows))

    def test_remove_matches_name_and_amount_exactly(self):
        ledger.add_service_charge(self.billing, "X-Ray", 500, quantity=2)
        ledger.add_service_charge(self.billing, "X-Ray", 700)

        removed = ledger.remove_service_charge(self.billing, "X-Ray", 500)

        self.assertEqual(removed, 2)
        remaining = list(self.billing.services.all())
        self.assertEqual(len(remaining), 1)
        self.assertEqual(remaining[0].amount, money("700"))

    def test_bulk_add(self):
        added = ledger.add_bulk_services(self.billing, [
            {"service_name": "ECG", "amount": 150, "quantity": 1},
            {"service_name": "Dressing", "amount": 200, "quantity": 2},
        ])
        self.assertEqual(len(added), 3)
        self.assertEqual(self.billing.summary()["service_total"], money("550"))

    def test_bulk_add_is_all_or_nothing(self):
        with self.assertRaises(LedgerError):
            ledger.add_bulk_services(self.billing, [
                {"service_name": "ECG", "amount": 150},
                {"service_name": "Broken", "amount": -1},
            ])
        self.assertEqual(self.billing.services.count(), 0)

    def test_invalid_input(self):
        with self.assertRaises(LedgerError):
            ledger.add_service_charge(self.billing, "ECG", -10)
        with self.assertRaises(LedgerError):
            ledger.add_service_charge(self.billing, "ECG", "abc")
        with self.assertRaises(LedgerError):
            ledger.add_service_charge(self.billing, "ECG", 100, quantity=0)
        with self.assertRaises(LedgerError):
            ledger.add_service_charge(self.billing, "  ", 100)

    def test_every_write_bumps_version(self):
        start = self.billing.version
        ledger.add_service_charge(self.billing, "ECG", 150)
        ledger.set_discount(self.billing, 10)
        self.assertEqual(self.billing.version, start + 2)


class ConsultantChargeTest(LedgerTestCase):
    def test_visits_are_named_after_the_doctor(self):
        ledger.add_consultant_charge(self.billing, "Mehta", 500, visit_times=2)

        rows = self.billing.services.filter(type=ServiceCharge.DOCTOR_VISIT)
        self.assertEqual(rows.count(), 2)
        self.assertEqual(rows[0].service_name, "Consultant Charge: Dr. Mehta")
        self.assertEqual(rows[0].doctor_name, "Mehta")

    def test_remove_all_visits_by_doctor(self):
        ledger.add_consultant_charge(self.billing, "Mehta", 500, visit_times=2)
        ledger.add_consultant_charge(self.billing, "Rao", 300)

        removed = ledger.remove_consultant_charges(self.billing, "Mehta")

        self.assertEqual(removed, 2)
        self.assertEqual(self.billing.services.get().doctor_name, "Rao")


class PaymentTest(LedgerTestCase):
    def test_advance_then_refund(self):
        ledger.record_payment(self.billing, 1000, "cash")
        ledger.record_payment(self.billing, 300, "online", entry_type=Payment.REFUND)

        self.assertEqual(self.billing.total_deposit, money("700"))
        self.assertDepositConsistent()

    def test_delete_reverses_effect(self):
        advance = ledger.record_payment(self.billing, 1000, "cash")
        refund = ledger.record_payment(self.billing, 250, "card", entry_type=Payment.REFUND)

        ledger.delete_payment(self.billing, refund.pk)
        self.assertEqual(self.billing.total_deposit, money("1000"))

        ledger.delete_payment(self.billing, advance.pk)
        self.assertEqual(self.billing.total_deposit, money("0"))
        self.assertDepositConsistent()

    def test_deposit_invariant_over_mixed_sequence(self):
        kept = []
        for amount, kind in ((500, "advance"), (200, "refund"), (800, "advance"), (50, "refund")):
            kept.append(ledger.record_payment(self.billing, amount, "cash", entry_type=kind))
            self.assertDepositConsistent()
        ledger.delete_payment(self.billing, kept[1].pk)
        self.assertDepositConsistent()
        self.assertEqual(self.billing.total_deposit, money("1250"))

    def test_date_comes_from_caller_time_from_now(self):
        payment = ledger.record_payment(self.billing, 100, "cash", date=date(2025, 1, 5))

        self.assertEqual(timezone.localtime(payment.date).date(), date(2025, 1, 5))

    def test_server_assigns_unique_ids(self):
        first = ledger.record_payment(self.billing, 100, "cash")
        second = ledger.record_payment(self.billing, 100, "cash")
        self.assertIsInstance(first.pk, uuid.UUID)
        self.assertNotEqual(first.pk, second.pk)

    def test_invalid_payments(self):
        with self.assertRaises(LedgerError):
            ledger.record_payment(self.billing, 0, "cash")
        with self.assertRaises(LedgerError):
            ledger.record_payment(self.billing, -5, "cash")
        with self.assertRaises(LedgerError):
            ledger.record_payment(self.billing, 100, "cheque")
        with self.assertRaises(LedgerError):
            ledger.record_payment(self.billing, 100, "cash", entry_type="bonus")
        self.assertEqual(self.billing.payments.count(), 0)

    def test_delete_unknown_payment(self):
        with self.assertRaises(PaymentNotFound):
            ledger.delete_payment(self.billing, uuid.uuid4())
        with self.assertRaises(PaymentNotFound):
            ledger.delete_payment(self.billing, "not-a-uuid")

    def test_cannot_delete_payment_of_another_bill(self):
        other = make_admission().billing
        payment = ledger.record_payment(other, 100, "cash")
        with self.assertRaises(PaymentNotFound):
            ledger.delete_payment(self.billing, payment.pk)

    @mock.patch("ipd.services.ledger.send_payment_notification")
    def test_notification_sent_after_commit(self, send):
        with self.captureOnCommitCallbacks(execute=True):
            ledger.record_payment(self.billing, 500, "cash", notify=True)

        send.assert_called_once_with(
            self.admission.phone, self.admission.name, money("500"), money("500"), Payment.ADVANCE
        )

    @mock.patch("ipd.services.ledger.send_payment_notification")
    def test_no_notification_by_default(self, send):
        with self.captureOnCommitCallbacks(execute=True):
            ledger.record_payment(self.billing, 500, "cash")
        send.assert_not_called()


class DiscountAndSummaryTest(LedgerTestCase):
    def test_oxygen_and_consultant_scenario(self):
        ledger.add_service_charge(self.billing, "Oxygen", 200, quantity=2)
        ledger.add_consultant_charge(self.billing, "A", 500)
        ledger.set_discount(self.billing, 100)
        ledger.record_payment(self.billing, 1000, "cash")

        self.assertEqual(self.billing.services.filter(service_name="Oxygen").count(), 2)
        summary = self.billing.summary()
        self.assertEqual(summary["service_total"], money("400"))
        self.assertEqual(summary["consultant_total"], money("500"))
        self.assertEqual(summary["net_total"], money("800"))
        self.assertEqual(summary["total_deposit"], money("1000"))
        self.assertEqual(summary["due"], money("-200"))

    def test_discount_overwrites(self):
        ledger.set_discount(self.billing, 100)
        ledger.set_discount(self.billing, 40)
        self.billing.refresh_from_db()
        self.assertEqual(self.billing.discount, money("40"))

    def test_negative_discount_rejected(self):
        with self.assertRaises(LedgerError):
            ledger.set_discount(self.billing, -1)

    def test_discount_above_gross_is_allowed_with_warning(self):
        ledger.add_service_charge(self.billing, "ECG", 150)
        with self.assertLogs("ipd.services.ledger", level="WARNING") as logs:
            ledger.set_discount(self.billing, 200)
        self.assertIn("exceeds gross total", logs.output[0])
        self.assertEqual(self.billing.summary()["net_total"], money("-50"))


class AdjustDepositTest(LedgerTestCase):
    def test_increase_books_advance(self):
        ledger.record_payment(self.billing, 1000, "cash")

        payment = ledger.adjust_deposit(self.billing, 1500, "online")

        self.assertEqual(payment.type, Payment.ADVANCE)
        self.assertEqual(payment.amount_type, "deposit")
        self.assertEqual(payment.amount, money("500"))
        self.assertEqual(self.billing.total_deposit, money("1500"))
        self.assertDepositConsistent()

    def test_decrease_books_refund(self):
        ledger.record_payment(self.billing, 1000, "cash")

        payment = ledger.adjust_deposit(self.billing, 700)

        self.assertEqual(payment.type, Payment.REFUND)
        self.assertEqual(payment.amount, money("300"))
        self.assertDepositConsistent()

    def test_unchanged_deposit_books_nothing(self):
        ledger.record_payment(self.billing, 1000, "cash")
        self.assertIsNone(ledger.adjust_deposit(self.billing, "1000.00"))
        self.assertEqual(self.billing.payments.count(), 1)

    def test_deposit_drift_report(self):
        ledger.record_payment(self.billing, 1000, "cash")
        BillingRecord.objects.filter(pk=self.billing.pk).update(total_deposit=Decimal("900"))

        drift = ledger.deposit_drift()

        self.assertEqual(len(drift), 1)
        billing, cached, actual = drift[0]
        self.assertEqual(billing, self.billing)
        self.assertEqual(cached, money("900"))
        self.assertEqual(actual, money("1000"))
