from datetime import timedelta
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from inventory import services as inventory_services
from inventory.models import Block, LotStatus
from leads.models import Lead
from sales import services
from sales.models import Quotation, Reservation
from tests.base import BaseAppTestCase
from tests.factories import Factory
from users.models import RoleCode


class QuotationServiceTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR, username="asesor_cot")
        self.project = inventory_services.create_project(
            name="Sol Naciente",
            location="Chiclayo",
            currency="PEN",
            default_down_payment=Decimal("10"),
            default_financing_months=12,
            max_discount_percentage=Decimal("5"),
        )
        self.block = inventory_services.create_block(project=self.project, name="A")
        self.lot = inventory_services.create_lot(
            block=self.block, lot_number="A-1", area=Decimal("120"), price=Decimal("50000")
        )
        self.lead = Factory.lead()

    def _quote(self, lot=None, **kwargs):
        return services.create_quotation(
            lead=self.lead, lot=lot or self.lot, advisor=self.advisor, acting_user=self.advisor, **kwargs
        )

    def test_sol_naciente_quotation_uses_project_defaults(self):
        quotation = self._quote(discount=Decimal("0"))

        self.assertEqual(quotation.total_price, Decimal("50000"))
        self.assertEqual(quotation.final_price, Decimal("50000"))
        self.assertEqual(quotation.down_payment, Decimal("10"))
        self.assertEqual(quotation.amount_financed, Decimal("45000.00"))
        self.assertEqual(quotation.months_financed, 12)
        self.assertEqual(quotation.currency, "PEN")
        self.assertEqual(quotation.price_per_m2_at_quotation, Decimal("416.67"))
        self.assertEqual(quotation.valid_until, quotation.quotation_date + timedelta(days=30))
        self.assertEqual(quotation.status, Quotation.Status.ISSUED)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.QUOTED)

    def test_serial_codes_are_distinct_and_increasing(self):
        codes = []
        for n in range(4):
            lot = Factory.lot(block=self.block, lot_number=f"S-{n}")
            codes.append(self._quote(lot=lot).code)
        year = timezone.localdate().year
        self.assertEqual(len(set(codes)), 4)
        self.assertTrue(all(code.startswith(f"COT-{year}-") for code in codes))
        self.assertEqual(codes, sorted(codes))
        self.assertEqual(codes[0], f"COT-{year}-00001")

    def test_quoted_lot_cannot_be_quoted_again(self):
        self._quote()
        with self.assertRaises(BusinessRuleError):
            self._quote()

    def test_discount_above_project_maximum_is_rejected(self):
        with self.assertRaisesMessage(BusinessRuleError, "máximo permitido"):
            self._quote(discount=Decimal("2500.01"))
        quotation = self._quote(discount=Decimal("2500"))
        self.assertEqual(quotation.final_price, Decimal("47500"))

    def test_inactive_block_blocks_quotation(self):
        inventory_services.deactivate_block(self.block)
        self.lot.refresh_from_db()
        with self.assertRaises(BusinessRuleError):
            self._quote()

    def test_snapshot_is_not_affected_by_later_price_change(self):
        quotation = self._quote()
        inventory_services.update_lot(self.lot, {"price": Decimal("60000")})
        quotation.refresh_from_db()
        self.assertEqual(quotation.total_price, Decimal("50000"))

    def test_update_recalculates_only_when_pricing_inputs_change(self):
        quotation = self._quote()
        valid_until = quotation.valid_until
        services.update_quotation(quotation, {"months_financed": 24})
        self.assertEqual(quotation.amount_financed, Decimal("45000.00"))
        self.assertEqual(quotation.valid_until, valid_until)

        services.update_quotation(quotation, {"down_payment": Decimal("20")})
        self.assertEqual(quotation.amount_financed, Decimal("40000.00"))

        new_date = quotation.quotation_date + timedelta(days=3)
        services.update_quotation(quotation, {"quotation_date": new_date})
        self.assertEqual(quotation.valid_until, new_date + timedelta(days=30))

    def test_accept_reserves_lot_and_cancel_releases_it(self):
        accepted = self._quote()
        services.change_quotation_status(accepted, Quotation.Status.ACCEPTED)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.RESERVED)

        other_lot = Factory.lot(block=self.block, lot_number="A-2")
        canceled = self._quote(lot=other_lot)
        services.change_quotation_status(canceled, Quotation.Status.CANCELED)
        other_lot.refresh_from_db()
        self.assertEqual(other_lot.status, LotStatus.AVAILABLE)

        with self.assertRaises(InvalidTransitionError):
            services.change_quotation_status(canceled, Quotation.Status.ACCEPTED)

    def test_expired_quotation_cannot_be_accepted(self):
        quotation = self._quote(quotation_date=timezone.localdate() - timedelta(days=40))
        with self.assertRaisesMessage(BusinessRuleError, "vencida"):
            services.change_quotation_status(quotation, Quotation.Status.ACCEPTED)

    def test_release_lot_and_delete_free_the_lot(self):
        quotation = self._quote()
        services.release_lot(quotation)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.AVAILABLE)

        again = self._quote()
        services.delete_quotation(again)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.AVAILABLE)
        self.assertFalse(Quotation.objects.filter(pk=again.pk).exists())

    def test_deleting_accepted_quotation_frees_lot_and_block(self):
        quotation = self._quote()
        services.change_quotation_status(quotation, Quotation.Status.ACCEPTED)
        services.delete_quotation(quotation)

        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.AVAILABLE)
        inventory_services.delete_block(self.block)
        self.assertFalse(Block.objects.filter(pk=self.block.pk).exists())

    def test_deleting_canceled_quotation_leaves_requoted_lot_alone(self):
        canceled = self._quote()
        services.change_quotation_status(canceled, Quotation.Status.CANCELED)
        current = self._quote()

        services.delete_quotation(canceled)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.QUOTED)
        self.assertEqual(Quotation.objects.get().pk, current.pk)

    def test_quotation_with_reservation_cannot_be_deleted(self):
        quotation = self._quote()
        services.create_reservation(client=self.lead.client, quotation=quotation)
        with self.assertRaises(ConflictError):
            services.delete_quotation(quotation)
        self.lot.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.RESERVED)


class ReservationServiceTests(BaseAppTestCase):
    def setUp(self):
        self.user = self.make_user(role=RoleCode.ADMIN, username="admin_res")
        self.lot = Factory.lot(status=LotStatus.QUOTED)
        self.quotation = Factory.quotation(lot=self.lot)
        self.client_obj = self.quotation.lead.client

    def _reserve(self, **values):
        return services.create_reservation(
            client=self.client_obj, quotation=self.quotation, acting_user=self.user, **values
        )

    def test_reservation_accepts_issued_quotation_and_defaults(self):
        reservation = self._reserve(
            amount_paid=Decimal("500"), total_amount_required=Decimal("2000")
        )
        self.quotation.refresh_from_db()
        self.lot.refresh_from_db()
        self.assertEqual(self.quotation.status, Quotation.Status.ACCEPTED)
        self.assertEqual(self.lot.status, LotStatus.RESERVED)
        self.assertEqual(reservation.remaining_amount, Decimal("1500"))
        self.assertGreater(reservation.expires_at, timezone.now() + timedelta(days=6))

    def test_second_active_reservation_conflicts(self):
        self._reserve()
        with self.assertRaises(ConflictError):
            self._reserve()

    def test_settling_sells_lot_and_completes_lead(self):
        reservation = self._reserve()
        services.change_reservation_status(reservation, Reservation.SETTLED, acting_user=self.user)
        self.lot.refresh_from_db()
        lead = Lead.objects.get(pk=self.quotation.lead_id)
        self.assertEqual(self.lot.status, LotStatus.SOLD)
        self.assertEqual(reservation.get_status_display(), "Pagada")
        self.assertEqual(lead.status, Lead.Status.COMPLETED)
        self.assertEqual(lead.completion_reason, Lead.CompletionReason.SALE)

    def test_annulment_releases_lot_and_cancels_quotation(self):
        reservation = self._reserve()
        services.change_reservation_status(reservation, Reservation.Status.ANULATED)
        self.lot.refresh_from_db()
        self.quotation.refresh_from_db()
        self.assertEqual(self.lot.status, LotStatus.AVAILABLE)
        self.assertEqual(self.quotation.status, Quotation.Status.CANCELED)

        with self.assertRaises(InvalidTransitionError):
            services.change_reservation_status(reservation, Reservation.SETTLED)

    def test_payment_history_is_validated(self):
        with self.assertRaises(BusinessRuleError):
            self._reserve(payment_history=[{"amount": "abc"}])
        reservation = self._reserve(
            payment_history=[{"date": "2025-01-10", "amount": "300.50", "method": "CASH"}]
        )
        self.assertEqual(len(reservation.payment_history), 1)

    def test_delete_is_soft(self):
        reservation = self._reserve()
        services.delete_reservation(reservation)
        reservation.refresh_from_db()
        self.assertFalse(reservation.is_active)


class SalesApiTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR, username="asesor_api_cot")
        self.login_as(self.advisor)
        self.project = Factory.project(default_down_payment=Decimal("10"))
        self.lot = Factory.lot(block=Factory.block(project=self.project))
        self.lead = Factory.lead(assigned_to=self.advisor)

    def test_create_quotation_endpoint(self):
        response = self.post_json(
            reverse("sales_api:quotation_list"),
            {"leadId": self.lead.id, "lotId": self.lot.id, "discount": 0},
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["advisorId"], self.advisor.id)
        self.assertEqual(body["finalPrice"], 50000.0)
        self.assertEqual(body["amountFinanced"], 45000.0)
        self.assertEqual(body["statusText"], "Emitida")

    def test_quotation_on_sold_lot_returns_400(self):
        self.lot.status = LotStatus.SOLD
        self.lot.save()
        response = self.post_json(
            reverse("sales_api:quotation_list"), {"leadId": self.lead.id, "lotId": self.lot.id}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "lot_not_available")

    def test_advisor_sees_only_own_quotations(self):
        Factory.quotation(advisor=self.make_user(role=RoleCode.SALES_ADVISOR))
        mine = Factory.quotation(advisor=self.advisor)
        payload = self.client.get(reverse("sales_api:quotation_list")).json()
        self.assertEqual([item["id"] for item in payload["data"]], [mine.id])

    def test_reservation_flow_through_api(self):
        quotation = Factory.quotation(advisor=self.advisor, lot=Factory.lot(status=LotStatus.QUOTED))
        response = self.post_json(
            reverse("sales_api:reservation_list"),
            {
                "clientId": quotation.lead.client_id,
                "quotationId": quotation.id,
                "amountPaid": 1000,
                "totalAmountRequired": 3000,
                "currency": "SOLES",
                "paymentMethod": "BANK_TRANSFER",
                "bankName": "BCP",
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["remainingAmount"], 2000.0)
        self.assertEqual(body["status"], "ISSUED")

        self.login_as(self.make_user(role=RoleCode.MANAGER))
        response = self.put_json(
            reverse("sales_api:reservation_status", args=[body["id"]]), {"status": "CANCELED"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["statusText"], "Pagada")
