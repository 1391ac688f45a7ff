from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.urls import reverse

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from core.models import AuditLog
from inventory import services
from inventory.models import Block, Lot, LotStatus, Project
from tests.base import BaseAppTestCase
from tests.factories import Factory
from users.models import RoleCode


class InventoryServiceTests(BaseAppTestCase):
    def setUp(self):
        self.user = self.make_user(role=RoleCode.ADMIN, username="inv_admin")

    def test_sol_naciente_example_reports_lot_counts(self):
        project = services.create_project(
            name="Sol Naciente",
            location="Chiclayo",
            currency="pen",
            default_down_payment=Decimal("10"),
            acting_user=self.user,
        )
        block = services.create_block(project=project, name="A", acting_user=self.user)
        lot = services.create_lot(
            block=block,
            lot_number="A-1",
            area=Decimal("120"),
            price=Decimal("50000"),
            acting_user=self.user,
        )

        reported = services.project_queryset().get(pk=project.pk)
        self.assertEqual(project.currency, "PEN")
        self.assertEqual(reported.total_blocks, 1)
        self.assertEqual(reported.total_lots, 1)
        self.assertEqual(reported.available_lots, 1)
        self.assertEqual(reported.sold_lots, 0)
        self.assertEqual(lot.status, LotStatus.AVAILABLE)
        self.assertEqual(lot.price_per_square_meter, Decimal("416.67"))
        self.assertTrue(
            AuditLog.objects.filter(entity_type="project", entity_id=str(project.pk)).exists()
        )

    def test_duplicate_project_name_is_case_insensitive(self):
        services.create_project(name="Los Pinos", location="Lima", currency="PEN")
        with self.assertRaises(ConflictError):
            services.create_project(name="los pinos", location="Piura", currency="PEN")

    def test_second_block_with_same_name_in_project_conflicts(self):
        project = Factory.project()
        services.create_block(project=project, name="A")
        with self.assertRaises(ConflictError):
            services.create_block(project=project, name="a")
        other = Factory.project()
        services.create_block(project=other, name="A")
        self.assertEqual(Block.objects.filter(name__iexact="a").count(), 2)

    def test_block_requires_active_project(self):
        project = Factory.project(is_active=False)
        with self.assertRaisesMessage(BusinessRuleError, "inactivo"):
            services.create_block(project=project, name="B")

    def test_delete_block_with_reserved_lot_fails(self):
        block = Factory.block()
        Factory.lot(block=block, status=LotStatus.RESERVED)
        with self.assertRaises(ConflictError):
            services.delete_block(block)
        self.assertTrue(Block.objects.filter(pk=block.pk).exists())

    def test_delete_project_with_sold_lot_fails(self):
        block = Factory.block()
        Factory.lot(block=block, status=LotStatus.SOLD)
        with self.assertRaises(ConflictError):
            services.delete_project(block.project)

    def test_delete_project_with_available_and_quoted_lots_cascades(self):
        block = Factory.block()
        Factory.lot(block=block, status=LotStatus.AVAILABLE)
        Factory.lot(block=block, status=LotStatus.QUOTED)
        project = block.project

        services.delete_project(project, acting_user=self.user)

        self.assertFalse(Project.objects.filter(pk=project.pk).exists())
        self.assertFalse(Lot.objects.filter(block_id=block.pk).exists())

    def test_lot_rejects_non_positive_area_and_price(self):
        block = Factory.block()
        with self.assertRaises(BusinessRuleError):
            services.create_lot(block=block, lot_number="X-1", area=Decimal("0"), price=Decimal("100"))
        with self.assertRaises(BusinessRuleError):
            services.create_lot(block=block, lot_number="X-1", area=Decimal("10"), price=Decimal("-1"))

    def test_lot_transitions_follow_the_table(self):
        lot = Factory.lot()
        services.change_lot_status(lot, LotStatus.QUOTED)
        services.change_lot_status(lot, LotStatus.RESERVED)
        services.change_lot_status(lot, LotStatus.SOLD)
        self.assertEqual(lot.status, LotStatus.SOLD)

        for target in (LotStatus.AVAILABLE, LotStatus.QUOTED, LotStatus.RESERVED):
            with self.assertRaises(InvalidTransitionError):
                services.change_lot_status(lot, target)

    def test_quoted_lot_cannot_jump_to_sold(self):
        lot = Factory.lot(status=LotStatus.QUOTED)
        with self.assertRaises(InvalidTransitionError):
            services.change_lot_status(lot, LotStatus.SOLD)
        lot.refresh_from_db()
        self.assertEqual(lot.status, LotStatus.QUOTED)

    def test_same_status_is_a_no_op(self):
        lot = Factory.lot(status=LotStatus.SOLD)
        services.change_lot_status(lot, LotStatus.SOLD)
        self.assertEqual(lot.status, LotStatus.SOLD)

    def test_deactivate_reserved_lot_is_rejected(self):
        lot = Factory.lot(status=LotStatus.RESERVED)
        with self.assertRaises(ConflictError):
            services.deactivate_lot(lot)

    def _assert_toggle_is_idempotent(self, instance, activate, deactivate):
        created_at = instance.created_at
        first = datetime(2030, 1, 1, 10, 0, tzinfo=dt_timezone.utc)
        second = datetime(2030, 1, 2, 10, 0, tzinfo=dt_timezone.utc)
        third = datetime(2030, 1, 3, 10, 0, tzinfo=dt_timezone.utc)

        with mock.patch("django.utils.timezone.now", return_value=first):
            activate(instance)
        instance.refresh_from_db()
        self.assertTrue(instance.is_active)
        self.assertEqual(instance.modified_at, first)

        with mock.patch("django.utils.timezone.now", return_value=second):
            activate(instance)
        instance.refresh_from_db()
        self.assertTrue(instance.is_active)
        self.assertEqual(instance.modified_at, second)

        with mock.patch("django.utils.timezone.now", return_value=third):
            deactivate(instance)
            deactivate(instance)
        instance.refresh_from_db()
        self.assertFalse(instance.is_active)
        self.assertEqual(instance.modified_at, third)
        self.assertEqual(instance.created_at, created_at)

    def test_project_activation_is_idempotent_and_advances_modified_at(self):
        self._assert_toggle_is_idempotent(
            Factory.project(), services.activate_project, services.deactivate_project
        )

    def test_block_activation_is_idempotent_and_advances_modified_at(self):
        self._assert_toggle_is_idempotent(
            Factory.block(), services.activate_block, services.deactivate_block
        )

    def test_lot_activation_is_idempotent_and_advances_modified_at(self):
        self._assert_toggle_is_idempotent(
            Factory.lot(), services.activate_lot, services.deactivate_lot
        )


class InventoryApiTests(BaseAppTestCase):
    def setUp(self):
        self.admin = self.make_user(role=RoleCode.ADMIN, username="api_admin")
        self.login_as(self.admin)

    def test_anonymous_request_gets_json_401(self):
        self.client.logout()
        response = self.client.get(reverse("inventory_api:project_list"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "not_authenticated")

    def test_advisor_cannot_create_projects(self):
        self.login_as(self.make_user(role=RoleCode.SALES_ADVISOR))
        response = self.post_json(
            reverse("inventory_api:project_list"),
            {"name": "Nuevo", "location": "Lima", "currency": "PEN"},
        )
        self.assertEqual(response.status_code, 403)

    def test_create_project_block_and_lot_through_api(self):
        response = self.post_json(
            reverse("inventory_api:project_list"),
            {"name": "Sol Naciente", "location": "Chiclayo", "currency": "PEN", "defaultDownPayment": 10},
        )
        self.assertEqual(response.status_code, 201)
        project_id = response.json()["id"]

        response = self.post_json(reverse("inventory_api:block_create"), {"projectId": project_id, "name": "A"})
        self.assertEqual(response.status_code, 201)
        block_id = response.json()["id"]

        response = self.post_json(
            reverse("inventory_api:lot_create"),
            {"blockId": block_id, "lotNumber": "A-1", "area": 120, "price": 50000},
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["statusText"], "Disponible")

        detail = self.client.get(reverse("inventory_api:project_detail", args=[project_id])).json()
        self.assertEqual(detail["totalLots"], 1)
        self.assertEqual(detail["availableLots"], 1)
        self.assertEqual(detail["defaultDownPayment"], 10.0)

    def test_duplicate_block_returns_409(self):
        block = Factory.block(name="A")
        response = self.post_json(
            reverse("inventory_api:block_create"), {"projectId": block.project_id, "name": " a "}
        )
        self.assertEqual(response.status_code, 409)
        self.assertIn("Ya existe un bloque", response.json()["error"])

    def test_invalid_lot_transition_returns_400(self):
        lot = Factory.lot(status=LotStatus.SOLD)
        response = self.put_json(reverse("inventory_api:lot_status", args=[lot.pk]), {"status": "Available"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_transition")

    def test_missing_project_returns_json_404(self):
        response = self.client.get(reverse("inventory_api:project_detail", args=[999999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_project_lots_filter_by_status(self):
        block = Factory.block()
        Factory.lot(block=block, status=LotStatus.AVAILABLE)
        Factory.lot(block=block, status=LotStatus.SOLD)
        response = self.client.get(
            reverse("inventory_api:project_lots", args=[block.project_id]), {"status": "Sold"}
        )
        payload = response.json()
        self.assertEqual(payload["meta"]["total"], 1)
        self.assertEqual(payload["data"][0]["status"], "Sold")

    def test_non_finite_lot_price_returns_400(self):
        block = Factory.block()
        for price in ("NaN", "Infinity"):
            response = self.post_json(
                reverse("inventory_api:lot_create"),
                {"blockId": block.id, "lotNumber": "N-1", "area": "120", "price": price},
            )
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["code"], "invalid_price")
        self.assertFalse(Lot.objects.filter(block=block).exists())
