from datetime import timedelta

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from leads import services
from leads.models import Client, Lead, LeadTask, Referral
from tests.base import BaseAppTestCase
from tests.factories import Factory
from users.models import RoleCode


class ClientServiceTests(BaseAppTestCase):
    def test_phone_is_normalized_and_unique_among_active_clients(self):
        client = services.create_client(name="Ana Torres", phone_number="+51 987-654-321", type="Natural")
        self.assertEqual(client.phone_number, "51987654321")

        with self.assertRaises(ConflictError):
            services.create_client(name="Otra", phone_number="51987654321")

        services.delete_client(client)
        other = services.create_client(name="Otra", phone_number="51987654321")
        self.assertTrue(other.is_active)

    def test_duplicate_dni_conflicts(self):
        services.create_client(name="Luis", dni="12345678", phone_number="911111111")
        with self.assertRaises(ConflictError):
            services.create_client(name="Luis B", dni="12345678", phone_number="922222222")

    def test_juridico_requires_company_name_and_ruc(self):
        with self.assertRaisesMessage(BusinessRuleError, "razón social"):
            services.create_client(type=Client.Type.JURIDICO, phone_number="933333333", ruc="20123456789")
        client = services.create_client(
            type=Client.Type.JURIDICO,
            company_name="Inversiones Norte SAC",
            ruc="20123456789",
            phone_number="933333333",
        )
        self.assertEqual(client.display_name, "Inversiones Norte SAC")

    def test_co_owners_are_validated_records(self):
        client = services.create_client(
            name="Rosa",
            phone_number="944444444",
            co_owners=[{"name": "Pedro", "dni": "87654321", "phone": "955555555"}],
        )
        self.assertEqual(client.co_owners[0]["name"], "Pedro")


class LeadServiceTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR, username="asesor")

    def test_lead_code_and_expiration_window(self):
        lead = services.create_lead(
            client=Factory.client(), capture_source=Lead.CaptureSource.COMPANY, acting_user=self.advisor
        )
        self.assertRegex(lead.code, rf"^LEAD-{timezone.localdate().year}-\d{{5}}$")
        self.assertEqual(lead.expiration_date - lead.entry_date, timedelta(days=7))
        self.assertEqual(lead.status, Lead.Status.REGISTERED)

    def test_lead_codes_increase(self):
        client = Factory.client()
        first = services.create_lead(client=client, capture_source="Company")
        second = services.create_lead(client=client, capture_source="Loyalty")
        self.assertLess(first.code, second.code)

    def test_toggle_status_switches_registered_and_attended(self):
        lead = Factory.lead()
        services.toggle_lead_status(lead)
        self.assertEqual(lead.status, Lead.Status.ATTENDED)
        services.toggle_lead_status(lead)
        self.assertEqual(lead.status, Lead.Status.REGISTERED)

    def test_cancellation_reason_kept_only_for_canceled_leads(self):
        lead = Factory.lead()
        services.update_lead(lead, {"status": "Attended", "cancellation_reason": "Sin presupuesto"})
        self.assertEqual(lead.cancellation_reason, "")
        services.update_lead(lead, {"status": "Canceled", "cancellation_reason": "Sin presupuesto"})
        self.assertEqual(lead.cancellation_reason, "Sin presupuesto")

    def test_recycle_only_from_expired_or_canceled(self):
        lead = Factory.lead(status=Lead.Status.ATTENDED)
        with self.assertRaises(InvalidTransitionError):
            services.recycle_lead(lead, acting_user=self.advisor)

        lead.status = Lead.Status.EXPIRED
        lead.save()
        services.recycle_lead(lead, acting_user=self.advisor)
        lead.refresh_from_db()
        self.assertEqual(lead.status, Lead.Status.IN_FOLLOW_UP)
        self.assertEqual(lead.recycle_count, 1)
        self.assertEqual(lead.last_recycled_by, self.advisor)
        self.assertGreater(lead.expiration_date, timezone.now() + timedelta(days=6))

    def test_expiration_sweep_skips_terminal_leads(self):
        past = timezone.now() - timedelta(days=1)
        open_lead = Factory.lead(status=Lead.Status.IN_FOLLOW_UP, expiration_date=past)
        completed = Factory.lead(status=Lead.Status.COMPLETED, expiration_date=past)
        canceled = Factory.lead(status=Lead.Status.CANCELED, expiration_date=past)
        fresh = Factory.lead(status=Lead.Status.REGISTERED)

        self.assertEqual(services.expire_overdue_leads(), 1)

        open_lead.refresh_from_db()
        completed.refresh_from_db()
        canceled.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(open_lead.status, Lead.Status.EXPIRED)
        self.assertEqual(completed.status, Lead.Status.COMPLETED)
        self.assertEqual(canceled.status, Lead.Status.CANCELED)
        self.assertEqual(fresh.status, Lead.Status.REGISTERED)

    def test_landing_reuses_existing_client_by_phone(self):
        client = Factory.client(phone_number="987654321")
        lead, found, created = services.register_landing_contact(name="Otro nombre", phone="987 654 321")
        self.assertFalse(created)
        self.assertEqual(found, client)
        self.assertEqual(lead.client, client)
        self.assertEqual(lead.capture_source, Lead.CaptureSource.COMPANY)
        self.assertEqual(Client.objects.count(), 1)

    def test_landing_creates_juridico_client_from_ruc(self):
        lead, client, created = services.register_landing_contact(
            name="Constructora Sur", phone="900000001", document="20100100100"
        )
        self.assertTrue(created)
        self.assertEqual(client.type, Client.Type.JURIDICO)
        self.assertEqual(client.ruc, "20100100100")
        self.assertEqual(client.company_name, "Constructora Sur")


class LeadApiTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR, username="asesor_api")
        self.login_as(self.advisor)

    def test_advisor_only_sees_own_leads(self):
        mine = Factory.lead(assigned_to=self.advisor)
        Factory.lead(assigned_to=self.make_user(role=RoleCode.SALES_ADVISOR))
        payload = self.client.get(reverse("leads_api:lead_list")).json()
        self.assertEqual(payload["meta"]["total"], 1)
        self.assertEqual(payload["data"][0]["id"], mine.id)

    def test_create_lead_assigns_current_advisor(self):
        client = Factory.client()
        response = self.post_json(
            reverse("leads_api:lead_list"), {"clientId": client.id, "captureSource": "RealEstateFair"}
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["assignedToId"], self.advisor.id)

    def test_lead_list_pins_preselected_lead(self):
        leads = [Factory.lead(assigned_to=self.advisor) for _ in range(5)]
        target = leads[0]
        page1 = self.client.get(
            reverse("leads_api:lead_list"), {"pageSize": 2, "preselectedId": target.id}
        ).json()
        self.assertEqual(page1["data"][0]["id"], target.id)
        page2 = self.client.get(
            reverse("leads_api:lead_list"), {"pageSize": 2, "page": 2, "preselectedId": target.id}
        ).json()
        self.assertNotIn(target.id, [item["id"] for item in page2["data"]])

    @override_settings(LANDING_API_TOKEN="secreto")
    def test_landing_endpoint_requires_token(self):
        self.client.logout()
        url = reverse("leads_api:landing_contact")
        response = self.post_json(url, {"name": "Web", "phone": "999888777"})
        self.assertEqual(response.status_code, 401)

        response = self.post_json(
            url, {"name": "Web", "phone": "999888777"}, HTTP_AUTHORIZATION="Bearer secreto"
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["clientCreated"])


class LeadTaskServiceTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR)
        self.lead = Factory.lead(assigned_to=self.advisor)

    def test_create_task_validates_fields(self):
        when = timezone.now() + timedelta(days=2)
        with self.assertRaisesMessage(BusinessRuleError, "descripción"):
            services.create_task(lead=self.lead, assigned_to=self.advisor, description="  ", scheduled_date=when)
        with self.assertRaisesMessage(BusinessRuleError, "Tipo de tarea"):
            services.create_task(
                lead=self.lead, assigned_to=self.advisor, description="Visita", scheduled_date=when, type="Fax"
            )
        services.delete_lead(self.lead)
        with self.assertRaisesMessage(BusinessRuleError, "lead"):
            services.create_task(lead=self.lead, assigned_to=self.advisor, description="Visita", scheduled_date=when)

    def test_task_defaults_and_completion_toggle(self):
        task = services.create_task(
            lead=self.lead,
            assigned_to=self.advisor,
            description="Llamar",
            scheduled_date=timezone.now() + timedelta(days=1),
        )
        self.assertEqual(task.type, LeadTask.Type.OTHER)
        self.assertFalse(task.is_completed)

        services.toggle_task_completion(task)
        self.assertTrue(task.is_completed)
        self.assertIsNotNone(task.completed_date)

        services.toggle_task_completion(task)
        self.assertFalse(task.is_completed)
        self.assertIsNone(task.completed_date)

    def test_update_with_completed_date_marks_task_done(self):
        task = Factory.task(lead=self.lead, assigned_to=self.advisor)
        done_at = timezone.now() - timedelta(hours=1)
        services.update_task(task, {"completed_date": done_at, "type": LeadTask.Type.CALL})
        task.refresh_from_db()
        self.assertTrue(task.is_completed)
        self.assertEqual(task.completed_date, done_at)
        self.assertEqual(task.type, LeadTask.Type.CALL)

        services.update_task(task, {"is_completed": False})
        task.refresh_from_db()
        self.assertFalse(task.is_completed)
        self.assertIsNone(task.completed_date)

    def test_filters_by_range_assignee_and_state(self):
        now = timezone.now()
        other = self.make_user(role=RoleCode.SALES_ADVISOR)
        inside = Factory.task(lead=self.lead, assigned_to=self.advisor, scheduled_date=now + timedelta(days=1))
        Factory.task(lead=self.lead, assigned_to=self.advisor, scheduled_date=now + timedelta(days=10))
        Factory.task(lead=self.lead, assigned_to=other, scheduled_date=now + timedelta(days=1))
        done = Factory.task(
            lead=self.lead,
            assigned_to=self.advisor,
            scheduled_date=now + timedelta(days=2),
            is_completed=True,
            completed_date=now,
        )
        removed = Factory.task(lead=self.lead, assigned_to=self.advisor, scheduled_date=now + timedelta(days=1))
        services.delete_task(removed)

        found = services.filter_tasks(date_from=now, date_to=now + timedelta(days=3), assigned_to=self.advisor)
        self.assertEqual(set(found), {inside, done})
        pending = services.filter_tasks(
            date_from=now, date_to=now + timedelta(days=3), assigned_to=self.advisor, is_completed=False
        )
        self.assertEqual(list(pending), [inside])
        self.assertNotIn(removed, services.pending_tasks())
        self.assertEqual(list(services.completed_tasks()), [done])


class ReferralServiceTests(BaseAppTestCase):
    def test_referral_opens_loyalty_lead_and_reuses_referrer(self):
        referrer = Factory.client(phone_number="955000111")
        result = services.register_landing_referral(
            referrer={"name": "Carla Ruiz", "phone": "955 000 111"},
            referred={"name": "Pedro Díaz", "phone": "955000222", "document": "44556677"},
        )
        self.assertFalse(result["referrer_created"])
        self.assertTrue(result["referred_created"])
        self.assertEqual(result["referral"].referrer_client, referrer)
        lead = result["lead"]
        self.assertEqual(lead.capture_source, Lead.CaptureSource.LOYALTY)
        self.assertEqual(lead.client.dni, "44556677")
        self.assertEqual(Referral.objects.count(), 1)

    def test_self_referral_is_rejected(self):
        with self.assertRaises(BusinessRuleError) as ctx:
            services.register_landing_referral(
                referrer={"name": "Ana", "phone": "955000333"},
                referred={"name": "Ana otra vez", "phone": "955000333"},
            )
        self.assertEqual(ctx.exception.code, "self_referral")
        self.assertFalse(Lead.objects.exists())

    def test_referral_stats_by_referrer(self):
        referrer = Factory.client()
        Factory.referral(referrer_client=referrer, referred_lead=Factory.lead(status=Lead.Status.COMPLETED))
        Factory.referral(referrer_client=referrer, referred_lead=Factory.lead(status=Lead.Status.IN_FOLLOW_UP))
        Factory.referral(referrer_client=referrer)
        Factory.referral(referred_lead=Factory.lead(status=Lead.Status.COMPLETED))

        stats = services.referral_stats(referrer)
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["converted"], 1)
        self.assertEqual(stats["in_follow_up"], 1)
        self.assertEqual(stats["pending"], 1)
        self.assertEqual(stats["conversion_rate"], 33.33)
        self.assertEqual(services.referral_stats()["total"], 4)
        self.assertEqual(services.referral_stats(Factory.client())["conversion_rate"], 0.0)


class LeadTaskApiTests(BaseAppTestCase):
    def setUp(self):
        self.advisor = self.make_user(role=RoleCode.SALES_ADVISOR)
        self.lead = Factory.lead(assigned_to=self.advisor)
        self.login_as(self.advisor)

    def test_create_assigns_current_user_and_parses_date(self):
        response = self.post_json(
            reverse("leads_api:task_list"),
            {
                "leadId": self.lead.id,
                "description": "Enviar brochure",
                "scheduledDate": "2026-11-05T10:30:00",
                "type": "Email",
            },
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["assignedToId"], self.advisor.id)
        self.assertEqual(body["type"], "Email")
        self.assertTrue(body["scheduledDate"].startswith("2026-11-05T10:30:00"))

    def test_missing_scheduled_date_is_rejected(self):
        response = self.post_json(
            reverse("leads_api:task_list"), {"leadId": self.lead.id, "description": "Llamar"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "missing_scheduled_date")

    def test_advisor_cannot_touch_tasks_of_others(self):
        foreign = Factory.task(assigned_to=self.make_user(role=RoleCode.SALES_ADVISOR))
        mine = Factory.task(lead=self.lead, assigned_to=self.advisor)
        listed = self.client.get(reverse("leads_api:task_list")).json()
        self.assertEqual([item["id"] for item in listed["items"]], [mine.id])
        self.assertEqual(
            self.client.get(reverse("leads_api:task_detail", args=[foreign.id])).status_code, 404
        )
        self.assertEqual(
            self.client.get(reverse("leads_api:user_tasks", args=[foreign.assigned_to_id])).status_code, 403
        )

    def test_complete_toggle_and_soft_delete(self):
        task = Factory.task(lead=self.lead, assigned_to=self.advisor)
        body = self.client.post(reverse("leads_api:task_complete", args=[task.id])).json()
        self.assertTrue(body["isCompleted"])
        completed = self.client.get(reverse("leads_api:task_completed")).json()
        self.assertEqual(completed["count"], 1)

        response = self.client.delete(reverse("leads_api:task_detail", args=[task.id]))
        self.assertEqual(response.status_code, 200)
        task.refresh_from_db()
        self.assertFalse(task.is_active)
        self.assertEqual(self.client.get(reverse("leads_api:task_completed")).json()["count"], 0)

    def test_lead_tasks_include_lead_header(self):
        Factory.task(lead=self.lead, assigned_to=self.advisor)
        body = self.client.get(reverse("leads_api:lead_tasks", args=[self.lead.id])).json()
        self.assertEqual(body["lead"]["id"], self.lead.id)
        self.assertEqual(len(body["tasks"]), 1)

    def test_range_filter_needs_both_ends(self):
        response = self.client.get(reverse("leads_api:task_list"), {"from": "2026-11-01"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "missing_date_range")


class ReferralApiTests(BaseAppTestCase):
    @override_settings(LANDING_API_TOKEN="secreto")
    def test_landing_referral_requires_token_and_people(self):
        url = reverse("leads_api:landing_referral")
        payload = {
            "referrer": {"firstName": "Carla", "lastName": "Ruiz", "phone": "966000111"},
            "referred": {"firstName": "Pedro", "phone": "966000222"},
        }
        self.assertEqual(self.post_json(url, payload).status_code, 401)

        response = self.post_json(url, {"referrer": payload["referrer"]}, HTTP_AUTHORIZATION="Bearer secreto")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "missing_referred")

        response = self.post_json(url, payload, HTTP_AUTHORIZATION="Bearer secreto")
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["referrerClientCreated"])
        self.assertEqual(Client.objects.get(pk=body["referrerClientId"]).name, "Carla Ruiz")

    def test_referral_list_and_stats(self):
        self.login_as(self.make_user(role=RoleCode.SUPERVISOR))
        referral = Factory.referral()
        listed = self.client.get(reverse("leads_api:referral_list")).json()
        self.assertEqual(listed["data"][0]["id"], referral.id)

        stats = self.client.get(
            reverse("leads_api:referral_stats"), {"clientId": referral.referrer_client_id}
        ).json()
        self.assertEqual(stats["totalReferrals"], 1)
        self.assertEqual(stats["pendingReferrals"], 1)
