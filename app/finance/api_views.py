from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import (
    BadPayload,
    extract_changes,
    iso,
    json_api,
    money,
    read_json,
    to_bool,
    to_date,
    to_decimal,
    to_int,
    to_text,
)
from core.pagination import PageParams, paginate
from sales.models import Reservation
from users.permissions import MANAGEMENT_ROLES, STAFF_ROLES, role_denied, roles_required

from . import services


def _id_list(value, field):
    if value is None:
        return None
    if not isinstance(value, list):
        raise BadPayload(f"{field} debe ser una lista", code=f"invalid_{field}")
    return [to_int(item, field, required=True) for item in value]


TRANSACTION_PAYLOAD = {
    "paymentDate": ("payment_date", to_date),
    "amountPaid": ("amount_paid", to_decimal),
    "paymentMethod": ("payment_method", to_text),
    "referenceNumber": ("reference_number", to_text),
    "receiptUrl": ("receipt_url", to_text),
    "paymentIds": ("payment_ids", _id_list),
    "startFromLastQuota": ("start_from_last", to_bool),
}


def payment_to_item(payment):
    return {
        "id": payment.id,
        "reservationId": payment.reservation_id,
        "dueDate": iso(payment.due_date),
        "amountDue": money(payment.amount_due),
        "amountPaid": money(payment.amount_paid),
        "remainingAmount": money(payment.remaining),
        "paid": payment.paid,
    }


def transaction_to_item(txn):
    return {
        "id": txn.id,
        "paymentDate": iso(txn.payment_date),
        "amountPaid": money(txn.amount_paid),
        "reservationId": txn.reservation_id,
        "paymentMethod": txn.payment_method,
        "referenceNumber": txn.reference_number or None,
        "receiptUrl": txn.receipt_url or None,
        "allocations": [
            {"paymentId": a.payment_id, "amount": money(a.amount)} for a in txn.allocations.all()
        ],
        "createdAt": iso(txn.created_at),
        "modifiedAt": iso(txn.modified_at),
    }


def _reservation_from(data):
    if "reservationId" not in data:
        return {}
    reservation_id = to_int(data.get("reservationId"), "reservationId")
    if not reservation_id:
        return {"reservation": None}
    return {"reservation": get_object_or_404(Reservation, pk=reservation_id, is_active=True)}


def _transaction_response(txn, status=200):
    txn = services.transaction_queryset().get(pk=txn.pk)
    return JsonResponse(transaction_to_item(txn), status=status)


# ── Cuotas ───────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservation_schedule(request, reservation_id):
    reservation = get_object_or_404(
        Reservation.objects.select_related("quotation"), pk=reservation_id, is_active=True
    )
    if request.method == "POST":
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
        services.generate_schedule(reservation, acting_user=request.user)
        status = 201
    else:
        status = 200
    payload = [payment_to_item(p) for p in services.payment_schedule(reservation)]
    return JsonResponse({"items": payload, "count": len(payload)}, status=status)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservation_pending(request, reservation_id):
    reservation = get_object_or_404(Reservation, pk=reservation_id, is_active=True)
    payload = [payment_to_item(p) for p in services.pending_payments(reservation)]
    return JsonResponse({"items": payload, "count": len(payload)})


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservation_quota_status(request, reservation_id):
    reservation = get_object_or_404(Reservation, pk=reservation_id, is_active=True)
    status = services.quota_status(reservation)
    return JsonResponse(
        {
            "minQuotasToPay": status["min_quotas_to_pay"],
            "maxQuotasToPay": status["max_quotas_to_pay"],
            "totalAmountRemaining": money(status["total_amount_remaining"]),
            "pending": [payment_to_item(p) for p in status["pending"]],
        }
    )


# ── Transacciones ─────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_transactions(request):
    if request.method == "POST":
        data = read_json(request)
        values = extract_changes(data, TRANSACTION_PAYLOAD)
        values.update(_reservation_from(data))
        if values.get("amount_paid") is None:
            raise BadPayload("amountPaid es requerido", code="missing_amountPaid")
        txn = services.create_transaction(acting_user=request.user, **values)
        return _transaction_response(txn, status=201)

    return JsonResponse(
        paginate(
            services.transaction_queryset(),
            PageParams.from_request(request),
            transaction_to_item,
            search_fields=("reference_number", "reservation__quotation__code"),
            order_fields={
                "paymentdate": "payment_date",
                "amountpaid": "amount_paid",
                "createdat": "created_at",
            },
        )
    )


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_transaction_detail(request, transaction_id):
    txn = get_object_or_404(services.transaction_queryset(), pk=transaction_id)
    if request.method == "GET":
        return JsonResponse(transaction_to_item(txn))

    denied = role_denied(request, MANAGEMENT_ROLES)
    if denied:
        return denied
    if request.method == "DELETE":
        services.delete_transaction(txn, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, TRANSACTION_PAYLOAD)
    changes.update(_reservation_from(data))
    services.update_transaction(txn, changes, acting_user=request.user)
    return _transaction_response(txn)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_reservation_transactions(request, reservation_id):
    reservation = get_object_or_404(Reservation, pk=reservation_id)
    qs = services.transaction_queryset().filter(reservation=reservation)
    payload = [transaction_to_item(t) for t in qs]
    return JsonResponse({"items": payload, "count": len(payload)})
