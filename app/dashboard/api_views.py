from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from core.api import iso, json_api, money, to_int
from users.models import RoleCode, User
from users.permissions import MANAGEMENT_ROLES, STAFF_ROLES, role_denied, roles_required

from . import services


def _year(request):
    return to_int(request.GET.get("year"), "year") or timezone.localdate().year


def _counts(rows):
    return [
        {
            "value": row["value"],
            "label": row["label"],
            "count": row["count"],
            "percentage": row["percentage"],
        }
        for row in rows
    ]


def project_row_to_item(row):
    return {
        "projectId": row["project_id"],
        "name": row["name"],
        "location": row["location"],
        "blocks": row["blocks"],
        "totalLots": row["total_lots"],
        "available": row["available"],
        "quoted": row["quoted"],
        "reserved": row["reserved"],
        "sold": row["sold"],
        "revenue": money(row["revenue"]),
        "averagePrice": money(row["average_price"]),
        "efficiency": row["efficiency"],
    }


def summary_to_item(summary):
    item = {
        "year": summary["year"],
        "completedSales": summary["completed_sales"],
        "totalLeads": summary["total_leads"],
        "totalQuotations": summary["total_quotations"],
        "totalReservations": summary["total_reservations"],
        "annualRevenue": money(summary["annual_revenue"]),
        "pendingPayments": money(summary["pending_payments"]),
        "averageTicket": money(summary["average_ticket"]),
        "conversionRate": summary["conversion_rate"],
        "leadsByStatus": _counts(summary["leads_by_status"]),
        "leadsBySource": _counts(summary["leads_by_source"]),
        "monthly": summary["monthly"],
    }
    if "lots_by_status" in summary:
        item["lotsByStatus"] = _counts(summary["lots_by_status"])
    if "project_performance" in summary:
        item["projectPerformance"] = [project_row_to_item(row) for row in summary["project_performance"]]
        item["monthlyRevenue"] = [
            {"month": row["month"], "revenue": money(row["revenue"])} for row in summary["monthly_revenue"]
        ]
    if "advisor_id" in summary:
        item["advisorId"] = summary["advisor_id"]
    return item


@require_http_methods(["GET"])
@roles_required(*MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,))
@json_api
def api_admin_dashboard(request):
    return JsonResponse(summary_to_item(services.admin_dashboard(_year(request))))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_advisor_dashboard(request, user_id=None):
    advisor = request.user if user_id is None else get_object_or_404(User, pk=user_id)
    if advisor != request.user:
        denied = role_denied(request, MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,))
        if denied:
            return denied
    return JsonResponse(summary_to_item(services.advisor_dashboard(advisor, _year(request))))


def advisor_row_to_item(row):
    return {
        "advisorId": row["advisor_id"],
        "advisorName": row["advisor_name"],
        "leadsAssigned": row["leads_assigned"],
        "leadsInFollowUp": row["leads_in_follow_up"],
        "leadsCompleted": row["leads_completed"],
        "quotations": row["quotations"],
        "reservations": row["reservations"],
        "tasksCompleted": row["tasks_completed"],
        "tasksPending": row["tasks_pending"],
        "efficiency": row["efficiency"],
    }


@require_http_methods(["GET"])
@roles_required(*MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,))
@json_api
def api_supervisor_dashboard(request, user_id=None):
    supervisor = request.user if user_id is None else get_object_or_404(User, pk=user_id)
    if supervisor != request.user:
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
    data = services.supervisor_dashboard(supervisor, _year(request))
    team = data["team"]
    return JsonResponse(
        {
            "year": data["year"],
            "supervisorId": data["supervisor_id"],
            "leadsByStatus": _counts(data["leads_by_status"]),
            "unassignedLeads": data["unassigned_leads"],
            "team": {
                "advisors": team["advisors"],
                "quotations": team["quotations"],
                "activeReservations": team["active_reservations"],
                "tasksDueToday": team["tasks_due_today"],
                "averageConversion": team["average_conversion"],
            },
            "advisorPerformance": [advisor_row_to_item(row) for row in data["advisor_performance"]],
            "funnel": _counts(data["funnel"]),
        }
    )


@require_http_methods(["GET"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_manager_dashboard(request):
    data = services.manager_dashboard(_year(request))
    kpis = data["kpis"]
    return JsonResponse(
        {
            "year": data["year"],
            "kpis": {
                "totalProjects": kpis["total_projects"],
                "activeProjects": kpis["active_projects"],
                "totalLeads": kpis["total_leads"],
                "totalQuotations": kpis["total_quotations"],
                "totalReservations": kpis["total_reservations"],
                "reservationAmount": money(kpis["reservation_amount"]),
                "conversionRate": kpis["conversion_rate"],
                "activeAdvisors": kpis["active_advisors"],
            },
            "projectPerformance": [
                {
                    "projectId": row["project_id"],
                    "name": row["name"],
                    "leads": row["leads"],
                    "completedLeads": row["completed_leads"],
                    "quotations": row["quotations"],
                    "reservations": row["reservations"],
                    "reservationAmount": money(row["reservation_amount"]),
                    "conversionRate": row["conversion_rate"],
                    "availableUnits": row["available_units"],
                    "reservedUnits": row["reserved_units"],
                    "occupancy": row["occupancy"],
                }
                for row in data["project_performance"]
            ],
            "teamPerformance": [advisor_row_to_item(row) for row in data["team_performance"]],
            "monthly": data["monthly"],
        }
    )


@require_http_methods(["GET"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_finance_dashboard(request):
    data = services.finance_manager_dashboard()
    summary = data["summary"]
    return JsonResponse(
        {
            "date": iso(data["date"]),
            "summary": {
                "invoiced": money(summary["invoiced"]),
                "collected": money(summary["collected"]),
                "pending": money(summary["pending"]),
                "overdue": money(summary["overdue"]),
                "nextMonthProjection": money(summary["next_month_projection"]),
            },
            "receivables": [
                {
                    "project": row["project"],
                    "invoiced": money(row["invoiced"]),
                    "collected": money(row["collected"]),
                    "pending": money(row["pending"]),
                    "overdue": money(row["overdue"]),
                    "nextDueDate": iso(row["next_due_date"]),
                    "nextDueAmount": money(row["next_due_amount"]),
                }
                for row in data["receivables"]
            ],
            "monthlyIncome": [
                {
                    "month": row["month"],
                    "revenue": money(row["revenue"]),
                    "accumulated": money(row["accumulated"]),
                }
                for row in data["monthly_income"]
            ],
            "schedule": [
                {
                    "paymentId": row["payment_id"],
                    "reservationId": row["reservation_id"],
                    "client": row["client"],
                    "project": row["project"],
                    "dueDate": iso(row["due_date"]),
                    "amount": money(row["amount"]),
                    "daysOverdue": row["days_overdue"],
                    "status": row["status"],
                }
                for row in data["schedule"]
            ],
            "delinquency": [
                {
                    "range": row["range"],
                    "count": row["count"],
                    "amount": money(row["amount"]),
                    "percentage": row["percentage"],
                }
                for row in data["delinquency"]
            ],
        }
    )
