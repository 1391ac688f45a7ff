from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import (
    BadPayload,
    check_api_token,
    extract_changes,
    iso,
    json_api,
    json_error,
    read_json,
    to_bool,
    to_datetime,
    to_int,
    to_text,
)
from core.pagination import PageParams, paginate
from inventory.models import Project
from users.models import RoleCode, User
from users.permissions import MANAGEMENT_ROLES, STAFF_ROLES, role_denied, roles_required, user_has_any_role

from . import services
from .models import Client, Lead


def _json_value(value, field):
    # validado como registro tipado en el servicio
    return value


CLIENT_PAYLOAD = {
    "name": ("name", to_text),
    "dni": ("dni", to_text),
    "ruc": ("ruc", to_text),
    "companyName": ("company_name", to_text),
    "phoneNumber": ("phone_number", to_text),
    "email": ("email", to_text),
    "address": ("address", to_text),
    "country": ("country", to_text),
    "type": ("type", to_text),
    "coOwners": ("co_owners", _json_value),
    "separateProperty": ("separate_property", to_bool),
    "separatePropertyData": ("separate_property_data", _json_value),
}
LEAD_PAYLOAD = {
    "status": ("status", to_text),
    "captureSource": ("capture_source", to_text),
    "completionReason": ("completion_reason", to_text),
    "cancellationReason": ("cancellation_reason", to_text),
}


def client_to_item(client):
    return {
        "id": client.id,
        "name": client.name,
        "displayName": client.display_name,
        "dni": client.dni,
        "ruc": client.ruc,
        "companyName": client.company_name,
        "phoneNumber": client.phone_number,
        "email": client.email,
        "address": client.address,
        "country": client.country,
        "type": client.type,
        "coOwners": client.co_owners,
        "separateProperty": client.separate_property,
        "separatePropertyData": client.separate_property_data,
        "isActive": client.is_active,
        "createdAt": iso(client.created_at),
        "modifiedAt": iso(client.modified_at),
    }


def lead_to_item(lead):
    advisor = lead.assigned_to
    return {
        "id": lead.id,
        "code": lead.code,
        "clientId": lead.client_id,
        "clientName": lead.client.display_name,
        "clientPhone": lead.client.phone_number,
        "projectId": lead.project_id,
        "projectName": lead.project.name if lead.project else None,
        "assignedToId": lead.assigned_to_id,
        "assignedToName": (advisor.get_full_name() or advisor.username) if advisor else None,
        "status": lead.status,
        "statusText": lead.get_status_display(),
        "captureSource": lead.capture_source,
        "entryDate": iso(lead.entry_date),
        "expirationDate": iso(lead.expiration_date),
        "recycleCount": lead.recycle_count,
        "lastRecycledAt": iso(lead.last_recycled_at),
        "lastRecycledById": lead.last_recycled_by_id,
        "completionReason": lead.completion_reason or None,
        "cancellationReason": lead.cancellation_reason or None,
        "isActive": lead.is_active,
        "createdAt": iso(lead.created_at),
        "modifiedAt": iso(lead.modified_at),
    }


def _lead_relations(data):
    """Resuelve projectId / assignedToId / clientId presentes en el payload."""
    relations = {}
    if "clientId" in data:
        client_id = to_int(data.get("clientId"), "clientId", required=True)
        relations["client"] = Client.objects.filter(pk=client_id).first()
    if "projectId" in data:
        project_id = to_int(data.get("projectId"), "projectId")
        relations["project"] = get_object_or_404(Project, pk=project_id) if project_id else None
    if "assignedToId" in data:
        user_id = to_int(data.get("assignedToId"), "assignedToId")
        relations["assigned_to"] = get_object_or_404(User, pk=user_id, is_active=True) if user_id else None
    return relations


def _visible_leads(user):
    qs = services.lead_queryset()
    if user_has_any_role(user, (RoleCode.ADMIN, RoleCode.MANAGER, RoleCode.SUPERVISOR)):
        return qs
    return qs.filter(assigned_to=user)


# ── Clientes ──────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_clients(request):
    if request.method == "POST":
        values = extract_changes(read_json(request), CLIENT_PAYLOAD)
        client = services.create_client(acting_user=request.user, **values)
        return JsonResponse(client_to_item(client), status=201)

    qs = Client.objects.all()
    if request.GET.get("includeInactive") != "true":
        qs = qs.filter(is_active=True)
    return JsonResponse(
        paginate(
            qs,
            PageParams.from_request(request),
            client_to_item,
            search_fields=("name", "company_name", "dni", "ruc", "phone_number", "email"),
            order_fields={"name": "name", "createdat": "created_at"},
        )
    )


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_client_detail(request, client_id):
    client = get_object_or_404(Client, pk=client_id)
    if request.method == "GET":
        return JsonResponse(client_to_item(client))
    if request.method == "DELETE":
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
        services.delete_client(client, acting_user=request.user)
        return JsonResponse({"deleted": True})

    changes = extract_changes(read_json(request), CLIENT_PAYLOAD)
    services.update_client(client, changes, acting_user=request.user)
    return JsonResponse(client_to_item(client))


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_client_activate(request, client_id):
    client = get_object_or_404(Client, pk=client_id)
    services.activate_client(client, acting_user=request.user)
    return JsonResponse(client_to_item(client))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_client_lookup(request):
    phone = request.GET.get("phone") or ""
    document = request.GET.get("document") or ""
    if not phone and not document:
        return json_error("Indique phone o document", code="missing_lookup")
    client = services.find_client_by_phone(phone) if phone else services.find_client_by_document(document)
    if client is None:
        return json_error("Cliente no encontrado", status=404, code="not_found")
    return JsonResponse(client_to_item(client))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_client_leads(request, client_id):
    client = get_object_or_404(Client, pk=client_id)
    payload = [lead_to_item(lead) for lead in services.lead_queryset().filter(client=client)]
    return JsonResponse({"items": payload, "count": len(payload)})


# ── Leads ─────────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_leads(request):
    if request.method == "POST":
        data = read_json(request)
        values = extract_changes(data, LEAD_PAYLOAD)
        values.update(_lead_relations(data))
        if "client" not in values:
            return json_error("clientId es requerido", code="missing_clientId")
        if "capture_source" not in values:
            return json_error("captureSource es requerido", code="missing_captureSource")
        if "assigned_to" not in values and request.user.is_sales_advisor:
            values["assigned_to"] = request.user
        lead = services.create_lead(acting_user=request.user, **values)
        return JsonResponse(lead_to_item(lead), status=201)

    qs = _visible_leads(request.user)
    status = (request.GET.get("status") or "").strip()
    if status:
        qs = qs.filter(status=status)
    return JsonResponse(
        paginate(
            qs,
            PageParams.from_request(request),
            lead_to_item,
            search_fields=("code", "client__name", "client__company_name", "client__phone_number"),
            order_fields={"code": "code", "entrydate": "entry_date", "expirationdate": "expiration_date"},
            default_ordering=("-entry_date",),
        )
    )


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lead_detail(request, lead_id):
    lead = get_object_or_404(_visible_leads(request.user), pk=lead_id)
    if request.method == "GET":
        return JsonResponse(lead_to_item(lead))
    if request.method == "DELETE":
        services.delete_lead(lead, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, LEAD_PAYLOAD)
    changes.update(_lead_relations(data))
    services.update_lead(lead, changes, acting_user=request.user)
    return JsonResponse(lead_to_item(lead))


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lead_toggle_status(request, lead_id):
    lead = get_object_or_404(_visible_leads(request.user), pk=lead_id)
    services.toggle_lead_status(lead, acting_user=request.user)
    return JsonResponse(lead_to_item(lead))


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lead_recycle(request, lead_id):
    lead = get_object_or_404(services.lead_queryset(), pk=lead_id)
    services.recycle_lead(lead, acting_user=request.user)
    return JsonResponse(lead_to_item(lead))


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_lead_activate(request, lead_id):
    lead = get_object_or_404(services.lead_queryset(active_only=False), pk=lead_id)
    services.activate_lead(lead, acting_user=request.user)
    return JsonResponse(lead_to_item(lead))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_leads_expired(request):
    qs = _visible_leads(request.user).filter(status=Lead.Status.EXPIRED)
    payload = [lead_to_item(lead) for lead in qs]
    return JsonResponse({"items": payload, "count": len(payload)})


@csrf_exempt
@require_http_methods(["POST"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_leads_check_expired(request):
    return JsonResponse({"expired": services.expire_overdue_leads()})


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_advisor_leads(request, user_id):
    advisor = get_object_or_404(User, pk=user_id)
    payload = [lead_to_item(lead) for lead in services.lead_queryset().filter(assigned_to=advisor)]
    return JsonResponse({"items": payload, "count": len(payload)})


# ── Tareas ────────────────────────────────────────────────────

TASK_PAYLOAD = {
    "description": ("description", to_text),
    "scheduledDate": ("scheduled_date", to_datetime),
    "type": ("type", to_text),
    "isCompleted": ("is_completed", to_bool),
    "completedDate": ("completed_date", to_datetime),
}


def task_to_item(task):
    user = task.assigned_to
    return {
        "id": task.id,
        "leadId": task.lead_id,
        "leadCode": task.lead.code,
        "clientName": task.lead.client.display_name,
        "assignedToId": task.assigned_to_id,
        "assignedToName": user.get_full_name() or user.username,
        "description": task.description,
        "scheduledDate": iso(task.scheduled_date),
        "completedDate": iso(task.completed_date),
        "isCompleted": task.is_completed,
        "type": task.type,
        "typeText": task.get_type_display(),
        "isActive": task.is_active,
    }


def _task_relations(data):
    relations = {}
    if "leadId" in data:
        lead_id = to_int(data.get("leadId"), "leadId", required=True)
        relations["lead"] = Lead.objects.filter(pk=lead_id).first()
    if "assignedToId" in data:
        user_id = to_int(data.get("assignedToId"), "assignedToId", required=True)
        relations["assigned_to"] = User.objects.filter(pk=user_id).first()
    return relations


def _visible_tasks(user):
    qs = services.task_queryset()
    if user_has_any_role(user, (RoleCode.ADMIN, RoleCode.MANAGER, RoleCode.SUPERVISOR)):
        return qs
    return qs.filter(assigned_to=user)


def _task_list(qs):
    payload = [task_to_item(task) for task in qs]
    return JsonResponse({"items": payload, "count": len(payload)})


@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_tasks(request):
    if request.method == "POST":
        data = read_json(request)
        values = extract_changes(data, TASK_PAYLOAD)
        values.update(_task_relations(data))
        if "lead" not in values:
            return json_error("leadId es requerido", code="missing_leadId")
        values.setdefault("assigned_to", request.user)
        values.setdefault("description", "")
        values.setdefault("scheduled_date", None)
        task = services.create_task(acting_user=request.user, **values)
        return JsonResponse(task_to_item(task), status=201)

    qs = _visible_tasks(request.user)
    date_from = to_datetime(request.GET.get("from"), "from")
    date_to = to_datetime(request.GET.get("to"), "to")
    if date_from or date_to:
        if not (date_from and date_to):
            return json_error("Indique from y to", code="missing_date_range")
        assigned_id = to_int(request.GET.get("assignedToId"), "assignedToId")
        lead_id = to_int(request.GET.get("leadId"), "leadId")
        completed = request.GET.get("isCompleted")
        qs = services.filter_tasks(
            date_from=date_from,
            date_to=date_to,
            assigned_to=get_object_or_404(User, pk=assigned_id) if assigned_id else None,
            lead=get_object_or_404(Lead, pk=lead_id) if lead_id else None,
            task_type=request.GET.get("type") or None,
            is_completed=to_bool(completed, "isCompleted") if completed else None,
        ).filter(pk__in=qs.values("pk"))
    return _task_list(qs)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_tasks_pending(request):
    return _task_list(services.pending_tasks().filter(pk__in=_visible_tasks(request.user).values("pk")))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_tasks_completed(request):
    return _task_list(services.completed_tasks().filter(pk__in=_visible_tasks(request.user).values("pk")))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_user_tasks(request, user_id):
    user = get_object_or_404(User, pk=user_id)
    if user != request.user:
        denied = role_denied(request, MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,))
        if denied:
            return denied
    return _task_list(services.task_queryset().filter(assigned_to=user))


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lead_tasks(request, lead_id):
    lead = get_object_or_404(_visible_leads(request.user), pk=lead_id)
    tasks = [task_to_item(task) for task in services.task_queryset().filter(lead=lead)]
    return JsonResponse({"lead": lead_to_item(lead), "tasks": tasks})


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_task_detail(request, task_id):
    task = get_object_or_404(_visible_tasks(request.user), pk=task_id)
    if request.method == "GET":
        return JsonResponse(task_to_item(task))
    if request.method == "DELETE":
        services.delete_task(task, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, TASK_PAYLOAD)
    changes.update(_task_relations(data))
    services.update_task(task, changes, acting_user=request.user)
    return JsonResponse(task_to_item(task))


@csrf_exempt
@require_http_methods(["POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_task_complete(request, task_id):
    task = get_object_or_404(_visible_tasks(request.user), pk=task_id)
    services.toggle_task_completion(task, acting_user=request.user)
    return JsonResponse(task_to_item(task))


# ── Referidos ─────────────────────────────────────────────────

def referral_to_item(referral):
    lead = referral.referred_lead
    return {
        "id": referral.id,
        "referrerClientId": referral.referrer_client_id,
        "referrerName": referral.referrer_client.display_name,
        "referredLeadId": lead.id,
        "referredLeadCode": lead.code,
        "referredName": lead.client.display_name,
        "referredLeadStatus": lead.status,
        "projectId": referral.project_id,
        "projectName": referral.project.name if referral.project else None,
        "createdAt": iso(referral.created_at),
    }


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_referrals(request):
    return JsonResponse(
        paginate(
            services.referral_queryset(),
            PageParams.from_request(request),
            referral_to_item,
            search_fields=("referrer_client__name", "referred_lead__code", "referred_lead__client__name"),
            order_fields={"createdat": "created_at"},
        )
    )


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_referral_stats(request):
    client_id = to_int(request.GET.get("clientId"), "clientId")
    referrer = get_object_or_404(Client, pk=client_id) if client_id else None
    stats = services.referral_stats(referrer)
    return JsonResponse(
        {
            "totalReferrals": stats["total"],
            "convertedReferrals": stats["converted"],
            "pendingReferrals": stats["pending"],
            "inFollowUpReferrals": stats["in_follow_up"],
            "conversionRate": stats["conversion_rate"],
        }
    )


# ── Landing ───────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["POST"])
@json_api
def api_landing_contact(request):
    token_error = check_api_token(request, "LANDING_API_TOKEN")
    if token_error:
        return token_error
    data = read_json(request)
    name = to_text(data.get("name"), "name", required=True)
    project = None
    project_id = to_int(data.get("projectId"), "projectId")
    if project_id:
        project = Project.objects.filter(pk=project_id, is_active=True).first()
    lead, client, created = services.register_landing_contact(
        name=name,
        phone=to_text(data.get("phone"), "phone", required=True),
        document=to_text(data.get("document"), "document"),
        email=to_text(data.get("email"), "email"),
        project=project,
    )
    return JsonResponse(
        {
            "leadId": lead.id,
            "leadCode": lead.code,
            "clientId": client.id,
            "clientCreated": created,
        },
        status=201,
    )


@csrf_exempt
@require_http_methods(["POST"])
@json_api
def api_landing_referral(request):
    token_error = check_api_token(request, "LANDING_API_TOKEN")
    if token_error:
        return token_error
    data = read_json(request)
    project = None
    project_id = to_int(data.get("projectId"), "projectId")
    if project_id:
        project = Project.objects.filter(pk=project_id, is_active=True).first()
    result = services.register_landing_referral(
        referrer=_landing_person(data.get("referrer"), "referrer"),
        referred=_landing_person(data.get("referred"), "referred"),
        project=project,
    )
    return JsonResponse(
        {
            "referralId": result["referral"].id,
            "referrerClientId": result["referral"].referrer_client_id,
            "referredLeadId": result["lead"].id,
            "referredLeadCode": result["lead"].code,
            "referrerClientCreated": result["referrer_created"],
            "referredClientCreated": result["referred_created"],
        },
        status=201,
    )


def _landing_person(value, key):
    if not isinstance(value, dict):
        raise BadPayload(f"{key} es requerido", code=f"missing_{key}")
    first = to_text(value.get("firstName"), f"{key}FirstName", required=True)
    last = to_text(value.get("lastName"), f"{key}LastName")
    return {
        "name": f"{first} {last}".strip(),
        "phone": to_text(value.get("phone"), f"{key}Phone", required=True),
        "document": to_text(value.get("document"), f"{key}Document"),
        "email": to_text(value.get("email"), f"{key}Email"),
    }
