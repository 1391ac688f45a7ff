from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import (
    extract_changes,
    iso,
    json_api,
    money,
    read_json,
    to_bool,
    to_date,
    to_datetime,
    to_decimal,
    to_int,
    to_text,
)
from core.pagination import PageParams, paginate
from inventory.models import Lot, Project
from leads.models import Client, Lead
from users.models import RoleCode, User
from users.permissions import MANAGEMENT_ROLES, STAFF_ROLES, role_denied, roles_required, user_has_any_role

from . import services
from .models import Quotation, Reservation

QUOTATION_PAYLOAD = {
    "discount": ("discount", to_decimal),
    "downPayment": ("down_payment", to_decimal),
    "monthsFinanced": ("months_financed", to_int),
    "currency": ("currency", to_text),
    "exchangeRate": ("exchange_rate", to_decimal),
    "quotationDate": ("quotation_date", to_date),
}


def _json_value(value, field):
    return value


RESERVATION_PAYLOAD = {
    "reservationDate": ("reservation_date", to_date),
    "amountPaid": ("amount_paid", to_decimal),
    "totalAmountRequired": ("total_amount_required", to_decimal),
    "remainingAmount": ("remaining_amount", to_decimal),
    "currency": ("currency", to_text),
    "paymentMethod": ("payment_method", to_text),
    "bankName": ("bank_name", to_text),
    "exchangeRate": ("exchange_rate", to_decimal),
    "expiresAt": ("expires_at", to_datetime),
    "notified": ("notified", to_bool),
    "schedule": ("schedule", to_text),
    "paymentHistory": ("payment_history", _json_value),
    "coOwners": ("co_owners", _json_value),
}
QUOTATION_ORDER_FIELDS = {
    "code": "code",
    "quotationdate": "quotation_date",
    "finalprice": "final_price",
    "createdat": "created_at",
}


def quotation_to_item(quotation):
    advisor = quotation.advisor
    return {
        "id": quotation.id,
        "code": quotation.code,
        "leadId": quotation.lead_id,
        "clientId": quotation.lead.client_id,
        "clientName": quotation.lead.client.display_name,
        "lotId": quotation.lot_id,
        "advisorId": quotation.advisor_id,
        "advisorName": advisor.get_full_name() or advisor.username,
        "status": quotation.status,
        "statusText": quotation.get_status_display(),
        "projectName": quotation.project_name,
        "blockName": quotation.block_name,
        "lotNumber": quotation.lot_number,
        "totalPrice": money(quotation.total_price),
        "discount": money(quotation.discount),
        "finalPrice": money(quotation.final_price),
        "downPayment": money(quotation.down_payment),
        "downPaymentAmount": money(quotation.down_payment_amount),
        "amountFinanced": money(quotation.amount_financed),
        "monthsFinanced": quotation.months_financed,
        "areaAtQuotation": money(quotation.area_at_quotation),
        "pricePerM2AtQuotation": money(quotation.price_per_m2_at_quotation),
        "currency": quotation.currency,
        "exchangeRate": money(quotation.exchange_rate),
        "quotationDate": iso(quotation.quotation_date),
        "validUntil": iso(quotation.valid_until),
        "isExpired": quotation.is_expired,
        "isActive": quotation.is_active,
        "createdAt": iso(quotation.created_at),
        "modifiedAt": iso(quotation.modified_at),
    }


def reservation_to_item(reservation):
    quotation = reservation.quotation
    return {
        "id": reservation.id,
        "clientId": reservation.client_id,
        "clientName": reservation.client.display_name,
        "quotationId": reservation.quotation_id,
        "quotationCode": quotation.code,
        "lotId": quotation.lot_id,
        "projectName": quotation.project_name,
        "blockName": quotation.block_name,
        "lotNumber": quotation.lot_number,
        "reservationDate": iso(reservation.reservation_date),
        "amountPaid": money(reservation.amount_paid),
        "totalAmountRequired": money(reservation.total_amount_required),
        "remainingAmount": money(reservation.remaining_amount),
        "currency": reservation.currency,
        "status": reservation.status,
        "statusText": reservation.get_status_display(),
        "paymentMethod": reservation.payment_method,
        "bankName": reservation.bank_name,
        "exchangeRate": money(reservation.exchange_rate),
        "expiresAt": iso(reservation.expires_at),
        "notified": reservation.notified,
        "schedule": reservation.schedule,
        "paymentHistory": reservation.payment_history,
        "coOwners": reservation.co_owners,
        "isActive": reservation.is_active,
        "createdAt": iso(reservation.created_at),
        "modifiedAt": iso(reservation.modified_at),
    }


def _visible_quotations(user):
    qs = services.quotation_queryset()
    if user_has_any_role(user, (RoleCode.ADMIN, RoleCode.MANAGER, RoleCode.SUPERVISOR)):
        return qs
    return qs.filter(advisor=user)


def _quotation_response(quotation, status=200):
    quotation = services.quotation_queryset().get(pk=quotation.pk)
    return JsonResponse(quotation_to_item(quotation), status=status)


def _reservation_response(reservation, status=200):
    reservation = services.reservation_queryset(active_only=False).get(pk=reservation.pk)
    return JsonResponse(reservation_to_item(reservation), status=status)


def _items(rows, serialize):
    payload = [serialize(row) for row in rows]
    return JsonResponse({"items": payload, "count": len(payload)})


# ── Cotizaciones ──────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_quotations(request):
    if request.method == "POST":
        data = read_json(request)
        lead_id = to_int(data.get("leadId"), "leadId", required=True)
        lot_id = to_int(data.get("lotId"), "lotId", required=True)
        advisor_id = to_int(data.get("advisorId"), "advisorId")
        values = extract_changes(data, QUOTATION_PAYLOAD)
        quotation = services.create_quotation(
            lead=Lead.objects.filter(pk=lead_id).first(),
            lot=Lot.objects.filter(pk=lot_id).first(),
            advisor=User.objects.filter(pk=advisor_id).first() if advisor_id else request.user,
            acting_user=request.user,
            **values,
        )
        return _quotation_response(quotation, status=201)

    qs = _visible_quotations(request.user)
    status = (request.GET.get("status") or "").strip()
    if status in Quotation.Status.values:
        qs = qs.filter(status=status)
    return JsonResponse(
        paginate(
            qs,
            PageParams.from_request(request),
            quotation_to_item,
            search_fields=("code", "lead__client__name", "lead__client__company_name"),
            order_fields=QUOTATION_ORDER_FIELDS,
        )
    )


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_quotation_detail(request, quotation_id):
    quotation = get_object_or_404(_visible_quotations(request.user), pk=quotation_id)
    if request.method == "GET":
        return JsonResponse(quotation_to_item(quotation))
    if request.method == "DELETE":
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
        services.delete_quotation(quotation, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, QUOTATION_PAYLOAD)
    if data.get("advisorId") is not None:
        changes["advisor"] = get_object_or_404(
            User, pk=to_int(data["advisorId"], "advisorId"), is_active=True
        )
    services.update_quotation(quotation, changes, acting_user=request.user)
    return _quotation_response(quotation)


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_quotation_status(request, quotation_id):
    quotation = get_object_or_404(_visible_quotations(request.user), pk=quotation_id)
    new_status = to_text(read_json(request).get("status"), "status", required=True)
    services.change_quotation_status(quotation, new_status, acting_user=request.user)
    return _quotation_response(quotation)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*STAFF_ROLES)
@json_api
def api_quotation_release_lot(request, quotation_id):
    quotation = get_object_or_404(_visible_quotations(request.user), pk=quotation_id)
    services.release_lot(quotation, acting_user=request.user)
    return _quotation_response(quotation)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lead_quotations(request, lead_id):
    lead = get_object_or_404(Lead, pk=lead_id)
    return _items(_visible_quotations(request.user).filter(lead=lead), quotation_to_item)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_advisor_quotations(request, user_id):
    advisor = get_object_or_404(User, pk=user_id)
    if advisor != request.user:
        denied = role_denied(request, (RoleCode.ADMIN, RoleCode.MANAGER, RoleCode.SUPERVISOR))
        if denied:
            return denied
    return _items(services.quotation_queryset().filter(advisor=advisor), quotation_to_item)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lot_quotations(request, lot_id):
    lot = get_object_or_404(Lot, pk=lot_id)
    return _items(_visible_quotations(request.user).filter(lot=lot), quotation_to_item)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_quotations(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    qs = _visible_quotations(request.user).filter(lot__block__project=project)
    return _items(qs, quotation_to_item)


# ── Reservas ──────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservations(request):
    if request.method == "POST":
        data = read_json(request)
        client_id = to_int(data.get("clientId"), "clientId", required=True)
        quotation_id = to_int(data.get("quotationId"), "quotationId", required=True)
        values = extract_changes(data, RESERVATION_PAYLOAD)
        reservation = services.create_reservation(
            client=Client.objects.filter(pk=client_id).first(),
            quotation=Quotation.objects.filter(pk=quotation_id).first(),
            acting_user=request.user,
            **values,
        )
        return _reservation_response(reservation, status=201)

    qs = services.reservation_queryset()
    status = (request.GET.get("status") or "").strip()
    if status in Reservation.Status.values:
        qs = qs.filter(status=status)
    return JsonResponse(
        paginate(
            qs,
            PageParams.from_request(request),
            reservation_to_item,
            search_fields=("quotation__code", "client__name", "client__company_name"),
            order_fields={
                "reservationdate": "reservation_date",
                "expiresat": "expires_at",
                "createdat": "created_at",
            },
        )
    )


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservations_pending(request):
    qs = services.reservation_queryset().filter(status=Reservation.Status.ISSUED)
    return _items(qs, reservation_to_item)


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservation_detail(request, reservation_id):
    reservation = get_object_or_404(services.reservation_queryset(), pk=reservation_id)
    if request.method == "GET":
        return JsonResponse(reservation_to_item(reservation))
    if request.method == "DELETE":
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
        services.delete_reservation(reservation, acting_user=request.user)
        return JsonResponse({"deleted": True})

    changes = extract_changes(read_json(request), RESERVATION_PAYLOAD)
    services.update_reservation(reservation, changes, acting_user=request.user)
    return _reservation_response(reservation)


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "POST"])
@roles_required(*MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,))
@json_api
def api_reservation_status(request, reservation_id):
    reservation = get_object_or_404(services.reservation_queryset(), pk=reservation_id)
    new_status = to_text(read_json(request).get("status"), "status", required=True)
    services.change_reservation_status(reservation, new_status, acting_user=request.user)
    return _reservation_response(reservation)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_client_reservations(request, client_id):
    client = get_object_or_404(Client, pk=client_id)
    return _items(services.reservation_queryset().filter(client=client), reservation_to_item)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_quotation_reservations(request, quotation_id):
    quotation = get_object_or_404(Quotation, pk=quotation_id)
    return _items(services.reservation_queryset().filter(quotation=quotation), reservation_to_item)
