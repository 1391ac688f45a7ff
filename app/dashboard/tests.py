from datetime import date
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone

from dashboard import services
from inventory.models import LotStatus
from leads.models import Lead
from sales.models import Quotation, Reservation
from tests.base import BaseAppTestCase
from tests.factories import Factory
from users.models import RoleCode


class DashboardServiceTests(BaseAppTestCase):
    def test_empty_year_has_no_division_errors(self):
        summary = services.admin_dashboard(1999)
        self.assertEqual(summary["total_leads"], 0)
        self.assertEqual(summary["conversion_rate"], 0.0)
        self.assertEqual(summary["average_ticket"], Decimal("0.00"))
        self.assertTrue(all(row["percentage"] == 0.0 for row in summary["leads_by_source"]))
        self.assertEqual(len(summary["monthly"]), 12)

    def test_admin_dashboard_aggregates(self):
        year = timezone.localdate().year
        advisor = self.make_user(role=RoleCode.SALES_ADVISOR)
        for _ in range(3):
            Factory.lead(assigned_to=advisor)
        Factory.lead(assigned_to=advisor, capture_source=Lead.CaptureSource.LOYALTY)

        quotation = Factory.quotation(
            advisor=advisor,
            status=Quotation.Status.ACCEPTED,
            lot=Factory.lot(status=LotStatus.SOLD),
        )
        reservation = Factory.reservation(
            quotation=quotation, status=Reservation.SETTLED, amount_paid=Decimal("2000")
        )
        payment = Factory.payment(reservation=reservation, amount_due=Decimal("500"))
        Factory.transaction(payments=[(payment, "200")])

        summary = services.admin_dashboard(year)

        self.assertEqual(summary["completed_sales"], 1)
        self.assertEqual(summary["total_reservations"], 1)
        self.assertEqual(summary["annual_revenue"], Decimal("2200"))
        self.assertEqual(summary["pending_payments"], Decimal("300"))
        self.assertEqual(summary["average_ticket"], quotation.final_price)
        sources = {row["value"]: row for row in summary["leads_by_source"]}
        self.assertEqual(sources["Loyalty"]["count"], 1)
        lots = {row["value"]: row for row in summary["lots_by_status"]}
        self.assertEqual(lots["Sold"]["count"], 1)

        mine = services.advisor_dashboard(advisor, year)
        self.assertEqual(mine["total_leads"], 4)
        self.assertEqual(mine["conversion_rate"], 25.0)
        other = services.advisor_dashboard(self.make_user(role=RoleCode.SALES_ADVISOR), year)
        self.assertEqual(other["total_quotations"], 0)


class DashboardApiTests(BaseAppTestCase):
    def test_advisor_cannot_read_admin_dashboard(self):
        self.login_as(self.make_user(role=RoleCode.SALES_ADVISOR))
        self.assertEqual(self.client.get(reverse("dashboard_api:admin")).status_code, 403)
        self.assertEqual(self.client.get(reverse("dashboard_api:advisor_self")).status_code, 200)

    def test_admin_dashboard_payload(self):
        self.login_as(self.make_user(role=RoleCode.ADMIN))
        body = self.client.get(reverse("dashboard_api:admin"), {"year": 2024}).json()
        self.assertEqual(body["year"], 2024)
        self.assertIn("lotsByStatus", body)
        self.assertIn("conversionRate", body)


class ProjectPerformanceTests(BaseAppTestCase):
    def test_admin_dashboard_includes_inventory_and_monthly_revenue(self):
        year = timezone.localdate().year
        project = Factory.project(name="Los Olivos")
        block = Factory.block(project=project)
        Factory.lot(block=block, status=LotStatus.SOLD, price=Decimal("60000"))
        Factory.lot(block=block, status=LotStatus.SOLD, price=Decimal("40000"))
        Factory.lot(block=block)
        Factory.lot(block=block, status=LotStatus.RESERVED)
        payment = Factory.payment(amount_due=Decimal("800"))
        Factory.transaction(payments=[(payment, "300")])

        summary = services.admin_dashboard(year)

        rows = {row["name"]: row for row in summary["project_performance"]}
        olivos = rows["Los Olivos"]
        self.assertEqual(olivos["blocks"], 1)
        self.assertEqual(olivos["total_lots"], 4)
        self.assertEqual(olivos["sold"], 2)
        self.assertEqual(olivos["available"], 1)
        self.assertEqual(olivos["revenue"], Decimal("100000"))
        self.assertEqual(olivos["efficiency"], 50.0)
        month = timezone.localdate().month
        self.assertEqual(summary["monthly_revenue"][month - 1]["revenue"], Decimal("300"))
        self.assertEqual(len(summary["monthly_revenue"]), 12)

    def test_project_without_lots_has_zero_efficiency(self):
        Factory.project(name="Vacío")
        rows = {row["name"]: row for row in services.project_performance()}
        self.assertEqual(rows["Vacío"]["total_lots"], 0)
        self.assertEqual(rows["Vacío"]["efficiency"], 0.0)
        self.assertEqual(rows["Vacío"]["average_price"], Decimal("0.00"))


class SupervisorDashboardTests(BaseAppTestCase):
    def test_scoped_to_supervised_advisors(self):
        year = timezone.localdate().year
        supervisor = self.make_user(role=RoleCode.SUPERVISOR)
        strong = self.make_user(role=RoleCode.SALES_ADVISOR, supervisor=supervisor)
        weak = self.make_user(role=RoleCode.SALES_ADVISOR, supervisor=supervisor)
        idle = self.make_user(role=RoleCode.SALES_ADVISOR, supervisor=supervisor)
        outsider = self.make_user(role=RoleCode.SALES_ADVISOR)

        Factory.lead(assigned_to=strong, status=Lead.Status.COMPLETED)
        following = Factory.lead(assigned_to=strong, status=Lead.Status.IN_FOLLOW_UP)
        pending = Factory.lead(assigned_to=weak)
        closed = Factory.lead(assigned_to=outsider, status=Lead.Status.COMPLETED)
        Factory.lead()
        Factory.task(lead=pending, assigned_to=weak, scheduled_date=timezone.now())
        Factory.quotation(lead=following, advisor=strong)
        Factory.quotation(lead=closed, advisor=outsider)

        data = services.supervisor_dashboard(supervisor, year)

        self.assertEqual(data["team"]["advisors"], 3)
        self.assertEqual(data["team"]["quotations"], 1)
        self.assertEqual(data["team"]["tasks_due_today"], 1)
        self.assertEqual(data["unassigned_leads"], 1)
        ranking = [row["advisor_id"] for row in data["advisor_performance"]]
        self.assertEqual(ranking, [strong.pk, weak.pk])
        self.assertNotIn(idle.pk, ranking)
        self.assertEqual(data["team"]["average_conversion"], 25.0)
        funnel = {row["value"]: row["count"] for row in data["funnel"]}
        self.assertEqual(funnel, {"Registered": 1, "Attended": 0, "InFollowUp": 1, "Completed": 1})

    def test_advisor_cannot_read_supervisor_dashboard(self):
        self.login_as(self.make_user(role=RoleCode.SALES_ADVISOR))
        self.assertEqual(self.client.get(reverse("dashboard_api:supervisor_self")).status_code, 403)

    def test_supervisor_cannot_read_another_supervisor(self):
        other = self.make_user(role=RoleCode.SUPERVISOR)
        self.login_as(self.make_user(role=RoleCode.SUPERVISOR))
        self.assertEqual(self.client.get(reverse("dashboard_api:supervisor_self")).status_code, 200)
        response = self.client.get(reverse("dashboard_api:supervisor", args=[other.pk]))
        self.assertEqual(response.status_code, 403)


class ManagerDashboardTests(BaseAppTestCase):
    def test_kpis_and_project_breakdown(self):
        year = timezone.localdate().year
        project = Factory.project(name="Brisas")
        Factory.project(name="Cerrado", is_active=False)
        block = Factory.block(project=project)
        advisor = self.make_user(role=RoleCode.SALES_ADVISOR)
        won = Factory.lead(assigned_to=advisor, project=project, status=Lead.Status.COMPLETED)
        Factory.lead(assigned_to=advisor, project=project)
        quotation = Factory.quotation(
            lead=won,
            advisor=advisor,
            status=Quotation.Status.ACCEPTED,
            lot=Factory.lot(block=block, status=LotStatus.RESERVED),
        )
        Factory.reservation(quotation=quotation, amount_paid=Decimal("1500"))
        Factory.lot(block=block)

        data = services.manager_dashboard(year)

        self.assertEqual(data["kpis"]["total_projects"], 2)
        self.assertEqual(data["kpis"]["active_projects"], 1)
        self.assertEqual(data["kpis"]["reservation_amount"], Decimal("1500"))
        self.assertEqual(data["kpis"]["conversion_rate"], 50.0)
        brisas = {row["name"]: row for row in data["project_performance"]}["Brisas"]
        self.assertEqual(brisas["leads"], 2)
        self.assertEqual(brisas["quotations"], 1)
        self.assertEqual(brisas["reservations"], 1)
        self.assertEqual(brisas["available_units"], 1)
        self.assertEqual(brisas["reserved_units"], 1)
        self.assertEqual(brisas["occupancy"], 50.0)
        self.assertEqual(data["team_performance"][0]["advisor_id"], advisor.pk)

    def test_manager_endpoint_is_management_only(self):
        self.login_as(self.make_user(role=RoleCode.SUPERVISOR))
        self.assertEqual(self.client.get(reverse("dashboard_api:manager")).status_code, 403)
        self.login_as(self.make_user(role=RoleCode.MANAGER))
        body = self.client.get(reverse("dashboard_api:manager"), {"year": 2025}).json()
        self.assertEqual(body["year"], 2025)
        self.assertIn("activeAdvisors", body["kpis"])


class FinanceDashboardTests(BaseAppTestCase):
    def test_receivables_schedule_and_delinquency(self):
        today = date(2026, 3, 15)
        reservation = Factory.reservation()
        late = Factory.payment(reservation=reservation, due_date=date(2026, 1, 5), amount_due=Decimal("1000"))
        Factory.transaction(payments=[(late, "400")])
        Factory.payment(reservation=reservation, due_date=date(2026, 3, 17), amount_due=Decimal("1000"))
        Factory.payment(reservation=reservation, due_date=date(2026, 4, 10), amount_due=Decimal("1000"))
        Factory.payment(reservation=reservation, due_date=date(2026, 2, 1), amount_due=Decimal("500"), paid=True)

        data = services.finance_manager_dashboard(today)

        summary = data["summary"]
        self.assertEqual(summary["invoiced"], Decimal("3500"))
        self.assertEqual(summary["pending"], Decimal("2600"))
        self.assertEqual(summary["overdue"], Decimal("600"))
        self.assertEqual(summary["next_month_projection"], Decimal("1000"))

        receivable = data["receivables"][0]
        self.assertEqual(receivable["project"], reservation.quotation.project_name)
        self.assertEqual(receivable["collected"], Decimal("900"))
        self.assertEqual(receivable["next_due_date"], date(2026, 3, 17))

        statuses = {row["due_date"]: (row["status"], row["days_overdue"]) for row in data["schedule"]}
        self.assertEqual(statuses[date(2026, 1, 5)], ("overdue", 69))
        self.assertEqual(statuses[date(2026, 3, 17)], ("due_soon", 0))
        self.assertEqual(statuses[date(2026, 4, 10)], ("pending", 0))

        ranges = {row["range"]: row for row in data["delinquency"]}
        self.assertEqual(ranges["61-90"]["count"], 1)
        self.assertEqual(ranges["61-90"]["percentage"], 100.0)
        self.assertEqual(ranges["1-30"]["amount"], Decimal("0"))

    def test_finance_endpoint_payload(self):
        self.login_as(self.make_user(role=RoleCode.ADMIN))
        body = self.client.get(reverse("dashboard_api:finance")).json()
        self.assertEqual(len(body["monthlyIncome"]), 12)
        self.assertEqual([row["range"] for row in body["delinquency"]], ["1-30", "31-60", "61-90", ">90"])
