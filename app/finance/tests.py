from datetime import date
from decimal import Decimal

from django.urls import reverse

from core.errors import BusinessRuleError
from finance import services
from finance.models import Payment, PaymentAllocation, PaymentTransaction
from tests.base import BaseAppTestCase
from tests.factories import Factory
from users.models import RoleCode


class ScheduleTests(BaseAppTestCase):
    def test_generate_schedule_splits_financed_amount(self):
        quotation = Factory.quotation(months_financed=3)
        quotation.amount_financed = Decimal("1000.00")
        quotation.save()
        reservation = Factory.reservation(quotation=quotation, reservation_date=date(2025, 1, 31))

        payments = services.generate_schedule(reservation)

        self.assertEqual([p.amount_due for p in payments], [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")])
        self.assertEqual(
            [p.due_date for p in payments],
            [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)],
        )
        with self.assertRaisesMessage(BusinessRuleError, "ya tiene un cronograma"):
            services.generate_schedule(reservation)

    def test_generate_schedule_requires_financing_months(self):
        reservation = Factory.reservation(quotation=Factory.quotation(months_financed=0))
        with self.assertRaises(BusinessRuleError):
            services.generate_schedule(reservation)


class QuotaStatusTests(BaseAppTestCase):
    def test_min_max_and_total_remaining(self):
        reservation = Factory.reservation()
        full = Factory.payment(reservation=reservation, due_date=date(2025, 1, 1), amount_due=Decimal("100"))
        partial = Factory.payment(reservation=reservation, due_date=date(2025, 2, 1), amount_due=Decimal("100"))
        Factory.payment(reservation=reservation, due_date=date(2025, 3, 1), amount_due=Decimal("100"))
        Factory.transaction(payments=[(full, "100"), (partial, "40")])

        status = services.quota_status(reservation)

        self.assertEqual(status["min_quotas_to_pay"], 1)
        self.assertEqual(status["max_quotas_to_pay"], 2)
        self.assertEqual(status["total_amount_remaining"], Decimal("160"))

    def test_schedule_reports_paid_and_remaining(self):
        reservation = Factory.reservation()
        payment = Factory.payment(reservation=reservation, amount_due=Decimal("250"))
        Factory.transaction(payments=[(payment, "100")])
        row = services.payment_schedule(reservation)[0]
        self.assertEqual(row.amount_paid, Decimal("100"))
        self.assertEqual(row.remaining, Decimal("150"))


class TransactionTests(BaseAppTestCase):
    def setUp(self):
        self.reservation = Factory.reservation()
        self.first = Factory.payment(reservation=self.reservation, due_date=date(2025, 1, 10), amount_due=Decimal("100"))
        self.second = Factory.payment(reservation=self.reservation, due_date=date(2025, 2, 10), amount_due=Decimal("100"))
        self.third = Factory.payment(reservation=self.reservation, due_date=date(2025, 3, 10), amount_due=Decimal("100"))

    def _allocated(self, payment):
        return sum(
            (a.amount for a in PaymentAllocation.objects.filter(payment=payment)), Decimal("0")
        )

    def test_explicit_ids_allocate_in_due_date_order(self):
        txn = services.create_transaction(
            amount_paid=Decimal("150"), payment_ids=[self.second.pk, self.first.pk]
        )
        self.assertEqual(txn.reservation, self.reservation)
        self.assertEqual(self._allocated(self.first), Decimal("100"))
        self.assertEqual(self._allocated(self.second), Decimal("50"))
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertTrue(self.first.paid)
        self.assertFalse(self.second.paid)

    def test_unknown_payment_id_is_rejected(self):
        with self.assertRaisesMessage(BusinessRuleError, "Uno o más pagos no existen"):
            services.create_transaction(amount_paid=Decimal("50"), payment_ids=[self.first.pk, 999999])
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_auto_selection_starts_from_last_quota_by_default(self):
        services.create_transaction(amount_paid=Decimal("100"), reservation=self.reservation)
        self.third.refresh_from_db()
        self.first.refresh_from_db()
        self.assertTrue(self.third.paid)
        self.assertFalse(self.first.paid)

    def test_auto_selection_from_first_quota(self):
        services.create_transaction(
            amount_paid=Decimal("100"), reservation=self.reservation, start_from_last=False
        )
        self.first.refresh_from_db()
        self.assertTrue(self.first.paid)

    def test_amount_over_pending_balance_is_rejected(self):
        with self.assertRaisesMessage(BusinessRuleError, "excede el saldo pendiente"):
            services.create_transaction(amount_paid=Decimal("150"), payment_ids=[self.first.pk])
        with self.assertRaises(BusinessRuleError):
            services.create_transaction(amount_paid=Decimal("0"), reservation=self.reservation)

    def test_update_replaces_allocations_and_recomputes_flags(self):
        txn = services.create_transaction(amount_paid=Decimal("100"), payment_ids=[self.first.pk])
        services.update_transaction(txn, {"amount_paid": Decimal("100"), "payment_ids": [self.second.pk]})
        self.first.refresh_from_db()
        self.second.refresh_from_db()
        self.assertFalse(self.first.paid)
        self.assertTrue(self.second.paid)
        self.assertEqual(txn.allocations.count(), 1)

    def test_delete_recomputes_paid_flags(self):
        txn = services.create_transaction(amount_paid=Decimal("200"), payment_ids=[self.first.pk, self.second.pk])
        services.delete_transaction(txn)
        self.assertFalse(Payment.objects.filter(reservation=self.reservation, paid=True).exists())
        self.assertFalse(PaymentAllocation.objects.exists())


class FinanceApiTests(BaseAppTestCase):
    def setUp(self):
        self.login_as(self.make_user(role=RoleCode.ADMIN, username="caja"))
        self.reservation = Factory.reservation()
        self.payment = Factory.payment(reservation=self.reservation, amount_due=Decimal("300"))

    def test_register_transaction_and_read_quota_status(self):
        response = self.post_json(
            reverse("finance_api:transaction_list"),
            {
                "amountPaid": 120,
                "paymentDate": "2025-05-02",
                "paymentMethod": "BANK_DEPOSIT",
                "paymentIds": [self.payment.pk],
                "referenceNumber": "OP-778",
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["allocations"], [{"paymentId": self.payment.pk, "amount": 120.0}])

        status = self.client.get(
            reverse("finance_api:reservation_quota_status", args=[self.reservation.pk])
        ).json()
        self.assertEqual(status["minQuotasToPay"], 0)
        self.assertEqual(status["maxQuotasToPay"], 1)
        self.assertEqual(status["totalAmountRemaining"], 180.0)

    def test_missing_payment_returns_400(self):
        response = self.post_json(
            reverse("finance_api:transaction_list"), {"amountPaid": 10, "paymentIds": [424242]}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Uno o más pagos no existen")
