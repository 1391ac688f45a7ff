"""Indicadores de solo lectura para los tableros por rol."""
from datetime import timedelta
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from finance.models import Payment, PaymentAllocation, PaymentTransaction
from inventory.models import Lot, LotStatus, Project
from leads.models import Lead, LeadTask
from sales.models import Quotation, Reservation
from users.models import RoleCode, User

ZERO = Decimal("0")
MONTHS = range(1, 13)


def percentage(part, total):
    if not total:
        return 0.0
    return round(part * 100.0 / total, 2)


def _counts_by(qs, field, choices):
    rows = {
        row[field]: row["n"] for row in qs.order_by().values(field).annotate(n=Count("id"))
    }
    total = sum(rows.values())
    return [
        {
            "value": value,
            "label": label,
            "count": rows.get(value, 0),
            "percentage": percentage(rows.get(value, 0), total),
        }
        for value, label in choices
    ]


def _monthly(qs, date_field):
    key = f"{date_field}__month"
    rows = {row[key]: row["n"] for row in qs.order_by().values(key).annotate(n=Count("id"))}
    return [rows.get(month, 0) for month in MONTHS]


def _monthly_series(leads, quotations, reservations):
    leads_by_month = _monthly(leads, "entry_date")
    quotations_by_month = _monthly(quotations, "quotation_date")
    reservations_by_month = _monthly(reservations, "reservation_date")
    return [
        {
            "month": month,
            "leads": leads_by_month[month - 1],
            "quotations": quotations_by_month[month - 1],
            "reservations": reservations_by_month[month - 1],
        }
        for month in MONTHS
    ]


def _pending_amount(payments):
    due = payments.aggregate(t=Sum("amount_due"))["t"] or ZERO
    covered = (
        PaymentAllocation.objects.filter(payment__in=payments).aggregate(t=Sum("amount"))["t"]
        or ZERO
    )
    return max(due - covered, ZERO)


def _summary(leads, quotations, reservations, transactions, payments):
    settled = reservations.filter(status=Reservation.SETTLED)
    completed_sales = settled.count()
    total_leads = leads.count()
    revenue = (transactions.aggregate(t=Sum("amount_paid"))["t"] or ZERO) + (
        settled.aggregate(t=Sum("amount_paid"))["t"] or ZERO
    )
    average_ticket = (
        quotations.filter(status=Quotation.Status.ACCEPTED).aggregate(a=Avg("final_price"))["a"]
        or ZERO
    )
    return {
        "completed_sales": completed_sales,
        "total_leads": total_leads,
        "total_quotations": quotations.count(),
        "total_reservations": reservations.count(),
        "annual_revenue": revenue,
        "pending_payments": _pending_amount(payments.filter(paid=False)),
        "average_ticket": Decimal(average_ticket).quantize(Decimal("0.01")),
        "conversion_rate": percentage(completed_sales, total_leads),
        "leads_by_status": _counts_by(leads, "status", Lead.Status.choices),
        "leads_by_source": _counts_by(leads, "capture_source", Lead.CaptureSource.choices),
        "monthly": _monthly_series(leads, quotations, reservations),
    }


def admin_dashboard(year):
    leads = Lead.objects.filter(is_active=True, entry_date__year=year)
    quotations = Quotation.objects.filter(quotation_date__year=year)
    reservations = Reservation.objects.filter(is_active=True, reservation_date__year=year)
    summary = _summary(
        leads,
        quotations,
        reservations,
        PaymentTransaction.objects.filter(payment_date__year=year),
        Payment.objects.filter(is_active=True, reservation__is_active=True),
    )
    summary["year"] = year
    summary["lots_by_status"] = _counts_by(
        Lot.objects.filter(is_active=True), "status", LotStatus.choices
    )
    summary["project_performance"] = project_performance()
    summary["monthly_revenue"] = monthly_revenue(year)
    return summary


def advisor_dashboard(advisor, year):
    leads = Lead.objects.filter(is_active=True, assigned_to=advisor, entry_date__year=year)
    quotations = Quotation.objects.filter(advisor=advisor, quotation_date__year=year)
    reservations = Reservation.objects.filter(
        is_active=True, quotation__advisor=advisor, reservation_date__year=year
    )
    summary = _summary(
        leads,
        quotations,
        reservations,
        PaymentTransaction.objects.filter(
            payment_date__year=year, reservation__quotation__advisor=advisor
        ),
        Payment.objects.filter(
            is_active=True, reservation__is_active=True, reservation__quotation__advisor=advisor
        ),
    )
    summary["year"] = year
    summary["advisor_id"] = advisor.pk
    return summary


# ── Administración ────────────────────────────────────────────

def project_performance():
    """
    Inventario por proyecto activo. Los ingresos suman el precio de lista de
    los lotes vendidos; la eficiencia es el porcentaje de lotes vendidos.
    """
    sold = Q(status=LotStatus.SOLD)
    rows = {
        row["block__project"]: row
        for row in Lot.objects.filter(is_active=True, block__is_active=True)
        .order_by()
        .values("block__project")
        .annotate(
            total=Count("id"),
            available=Count("id", filter=Q(status=LotStatus.AVAILABLE)),
            quoted=Count("id", filter=Q(status=LotStatus.QUOTED)),
            reserved=Count("id", filter=Q(status=LotStatus.RESERVED)),
            sold=Count("id", filter=sold),
            revenue=Sum("price", filter=sold),
            average_price=Avg("price"),
        )
    }
    projects = Project.objects.filter(is_active=True).annotate(
        block_count=Count("blocks", filter=Q(blocks__is_active=True))
    )
    result = []
    for project in projects.order_by("name"):
        row = rows.get(project.pk, {})
        total = row.get("total", 0)
        result.append(
            {
                "project_id": project.pk,
                "name": project.name,
                "location": project.location,
                "blocks": project.block_count,
                "total_lots": total,
                "available": row.get("available", 0),
                "quoted": row.get("quoted", 0),
                "reserved": row.get("reserved", 0),
                "sold": row.get("sold", 0),
                "revenue": row.get("revenue") or ZERO,
                "average_price": Decimal(row.get("average_price") or ZERO).quantize(Decimal("0.01")),
                "efficiency": percentage(row.get("sold", 0), total),
            }
        )
    return result


def monthly_revenue(year):
    rows = {
        row["payment_date__month"]: row["total"]
        for row in PaymentTransaction.objects.filter(payment_date__year=year)
        .order_by()
        .values("payment_date__month")
        .annotate(total=Sum("amount_paid"))
    }
    return [{"month": month, "revenue": rows.get(month) or ZERO} for month in MONTHS]


# ── Supervisión y gerencia ────────────────────────────────────

FUNNEL_STAGES = (
    Lead.Status.REGISTERED,
    Lead.Status.ATTENDED,
    Lead.Status.IN_FOLLOW_UP,
    Lead.Status.COMPLETED,
)
OPEN_STATUSES = (Lead.Status.REGISTERED, Lead.Status.ATTENDED, Lead.Status.IN_FOLLOW_UP)


def _funnel(leads):
    return [row for row in _counts_by(leads, "status", Lead.Status.choices) if row["value"] in FUNNEL_STAGES]


def advisor_performance(advisor, year):
    leads = Lead.objects.filter(is_active=True, assigned_to=advisor, entry_date__year=year)
    counts = leads.aggregate(
        total=Count("id"),
        follow_up=Count("id", filter=Q(status=Lead.Status.IN_FOLLOW_UP)),
        completed=Count("id", filter=Q(status=Lead.Status.COMPLETED)),
    )
    tasks = LeadTask.objects.filter(is_active=True, assigned_to=advisor).aggregate(
        done=Count("id", filter=Q(is_completed=True)),
        pending=Count("id", filter=Q(is_completed=False)),
    )
    return {
        "advisor_id": advisor.pk,
        "advisor_name": advisor.get_full_name() or advisor.username,
        "leads_assigned": counts["total"],
        "leads_in_follow_up": counts["follow_up"],
        "leads_completed": counts["completed"],
        "quotations": Quotation.objects.filter(advisor=advisor, quotation_date__year=year).count(),
        "reservations": Reservation.objects.filter(
            is_active=True, quotation__advisor=advisor, reservation_date__year=year
        ).count(),
        "tasks_completed": tasks["done"],
        "tasks_pending": tasks["pending"],
        "efficiency": percentage(counts["completed"], counts["total"]),
    }


def _team_performance(advisors, year):
    rows = [advisor_performance(advisor, year) for advisor in advisors]
    rows = [row for row in rows if row["leads_assigned"]]
    rows.sort(key=lambda row: row["efficiency"], reverse=True)
    return rows


def supervisor_dashboard(supervisor, year, today=None):
    """Tablero del supervisor, limitado a los asesores que tiene a cargo."""
    today = today or timezone.localdate()
    advisors = list(User.objects.filter(supervisor=supervisor, is_active=True))
    leads = Lead.objects.filter(is_active=True, assigned_to__in=advisors, entry_date__year=year)
    performance = _team_performance(advisors, year)
    average = (
        round(sum(row["efficiency"] for row in performance) / len(performance), 2)
        if performance
        else 0.0
    )
    return {
        "year": year,
        "supervisor_id": supervisor.pk,
        "leads_by_status": _counts_by(leads, "status", Lead.Status.choices),
        "unassigned_leads": Lead.objects.filter(
            is_active=True, assigned_to__isnull=True, status__in=OPEN_STATUSES
        ).count(),
        "team": {
            "advisors": len(advisors),
            "quotations": Quotation.objects.filter(
                advisor__in=advisors, quotation_date__year=year
            ).count(),
            "active_reservations": Reservation.objects.filter(
                is_active=True, status=Reservation.Status.ISSUED, quotation__advisor__in=advisors
            ).count(),
            "tasks_due_today": LeadTask.objects.filter(
                is_active=True,
                is_completed=False,
                assigned_to__in=advisors,
                scheduled_date__date=today,
            ).count(),
            "average_conversion": average,
        },
        "advisor_performance": performance,
        "funnel": _funnel(leads),
    }


def _sales_by_project(leads, quotations, reservations):
    lead_rows = {
        row["project"]: row
        for row in leads.order_by()
        .values("project")
        .annotate(n=Count("id"), completed=Count("id", filter=Q(status=Lead.Status.COMPLETED)))
    }
    quotation_rows = {
        row["lot__block__project"]: row["n"]
        for row in quotations.order_by().values("lot__block__project").annotate(n=Count("id"))
    }
    reservation_rows = {
        row["quotation__lot__block__project"]: row
        for row in reservations.order_by()
        .values("quotation__lot__block__project")
        .annotate(n=Count("id"), amount=Sum("amount_paid"))
    }
    lot_rows = {
        row["block__project"]: row
        for row in Lot.objects.filter(is_active=True)
        .order_by()
        .values("block__project")
        .annotate(
            total=Count("id"),
            available=Count("id", filter=Q(status=LotStatus.AVAILABLE)),
            reserved=Count("id", filter=Q(status=LotStatus.RESERVED)),
        )
    }
    result = []
    for project in Project.objects.filter(is_active=True).order_by("name"):
        lead_row = lead_rows.get(project.pk, {})
        reservation_row = reservation_rows.get(project.pk, {})
        lot_row = lot_rows.get(project.pk, {})
        total_lots = lot_row.get("total", 0)
        available = lot_row.get("available", 0)
        result.append(
            {
                "project_id": project.pk,
                "name": project.name,
                "leads": lead_row.get("n", 0),
                "completed_leads": lead_row.get("completed", 0),
                "quotations": quotation_rows.get(project.pk, 0),
                "reservations": reservation_row.get("n", 0),
                "reservation_amount": reservation_row.get("amount") or ZERO,
                "conversion_rate": percentage(lead_row.get("completed", 0), lead_row.get("n", 0)),
                "available_units": available,
                "reserved_units": lot_row.get("reserved", 0),
                "occupancy": percentage(total_lots - available, total_lots),
            }
        )
    return result


def manager_dashboard(year):
    leads = Lead.objects.filter(is_active=True, entry_date__year=year)
    quotations = Quotation.objects.filter(quotation_date__year=year)
    reservations = Reservation.objects.filter(is_active=True, reservation_date__year=year)
    advisors = User.objects.filter(is_active=True, role=RoleCode.SALES_ADVISOR)
    total_leads = leads.count()
    completed = leads.filter(status=Lead.Status.COMPLETED).count()
    return {
        "year": year,
        "kpis": {
            "total_projects": Project.objects.count(),
            "active_projects": Project.objects.filter(is_active=True).count(),
            "total_leads": total_leads,
            "total_quotations": quotations.count(),
            "total_reservations": reservations.count(),
            "reservation_amount": reservations.aggregate(t=Sum("amount_paid"))["t"] or ZERO,
            "conversion_rate": percentage(completed, total_leads),
            "active_advisors": advisors.count(),
        },
        "project_performance": _sales_by_project(leads, quotations, reservations),
        "team_performance": _team_performance(advisors, year),
        "monthly": _monthly_series(leads, quotations, reservations),
    }


# ── Finanzas ──────────────────────────────────────────────────

DUE_SOON_DAYS = 3
SCHEDULE_WINDOW_DAYS = 30
DELINQUENCY_RANGES = (("1-30", 1, 30), ("31-60", 31, 60), ("61-90", 61, 90), (">90", 91, None))


def _installments():
    """Cuotas vigentes con el saldo que les queda por cubrir."""
    payments = (
        Payment.objects.filter(is_active=True, reservation__is_active=True)
        .select_related("reservation__client", "reservation__quotation")
        .annotate(covered=Sum("allocations__amount"))
        .order_by("due_date", "pk")
    )
    for payment in payments:
        payment.covered = payment.covered or ZERO
        payment.balance = ZERO if payment.paid else max(payment.amount_due - payment.covered, ZERO)
        yield payment


def _amount_share(part, total):
    return percentage(float(part), float(total))


def _schedule_status(payment, today):
    if payment.due_date < today:
        return "overdue"
    if (payment.due_date - today).days <= DUE_SOON_DAYS:
        return "due_soon"
    return "pending"


def finance_manager_dashboard(today=None):
    """
    Cobranza global: resumen, cuentas por cobrar por proyecto, ingresos del
    año, cronograma de los próximos días y tramos de morosidad.
    """
    today = today or timezone.localdate()
    next_month = today.replace(day=1) + relativedelta(months=1)
    after_next = next_month + relativedelta(months=1)
    installments = list(_installments())
    open_installments = [p for p in installments if p.balance > ZERO]
    overdue = [p for p in open_installments if p.due_date < today]

    settled = Reservation.objects.filter(is_active=True, status=Reservation.SETTLED)
    collected = (PaymentTransaction.objects.aggregate(t=Sum("amount_paid"))["t"] or ZERO) + (
        settled.aggregate(t=Sum("amount_paid"))["t"] or ZERO
    )
    summary = {
        "invoiced": sum((p.amount_due for p in installments), ZERO),
        "collected": collected,
        "pending": sum((p.balance for p in open_installments), ZERO),
        "overdue": sum((p.balance for p in overdue), ZERO),
        "next_month_projection": sum(
            (p.balance for p in open_installments if next_month <= p.due_date < after_next), ZERO
        ),
    }

    receivables = {}
    for payment in installments:
        name = payment.reservation.quotation.project_name
        row = receivables.setdefault(
            name,
            {
                "project": name,
                "invoiced": ZERO,
                "collected": ZERO,
                "pending": ZERO,
                "overdue": ZERO,
                "next_due_date": None,
                "next_due_amount": ZERO,
            },
        )
        row["invoiced"] += payment.amount_due
        row["collected"] += payment.amount_due if payment.paid else min(payment.covered, payment.amount_due)
        row["pending"] += payment.balance
        if payment.balance and payment.due_date < today:
            row["overdue"] += payment.balance
        if payment.balance and payment.due_date >= today and row["next_due_date"] is None:
            row["next_due_date"] = payment.due_date
            row["next_due_amount"] = payment.balance

    income = []
    accumulated = ZERO
    for row in monthly_revenue(today.year):
        accumulated += row["revenue"]
        income.append({**row, "accumulated": accumulated})

    horizon = today + timedelta(days=SCHEDULE_WINDOW_DAYS)
    schedule = [
        {
            "payment_id": p.pk,
            "reservation_id": p.reservation_id,
            "client": p.reservation.client.display_name,
            "project": p.reservation.quotation.project_name,
            "due_date": p.due_date,
            "amount": p.balance,
            "days_overdue": max((today - p.due_date).days, 0),
            "status": _schedule_status(p, today),
        }
        for p in open_installments
        if p.due_date <= horizon
    ]

    overdue_total = summary["overdue"]
    delinquency = []
    for label, low, high in DELINQUENCY_RANGES:
        bucket = [
            p for p in overdue
            if low <= (today - p.due_date).days and (high is None or (today - p.due_date).days <= high)
        ]
        amount = sum((p.balance for p in bucket), ZERO)
        delinquency.append(
            {
                "range": label,
                "count": len(bucket),
                "amount": amount,
                "percentage": _amount_share(amount, overdue_total),
            }
        )

    return {
        "date": today,
        "summary": summary,
        "receivables": sorted(receivables.values(), key=lambda row: row["project"]),
        "monthly_income": income,
        "schedule": schedule,
        "delinquency": delinquency,
    }
