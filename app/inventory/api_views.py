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
    to_decimal,
    to_int,
    to_text,
)
from core.pagination import PageParams, paginate
from users.models import RoleCode
from users.permissions import MANAGEMENT_ROLES, STAFF_ROLES, role_denied, roles_required

from . import services
from .models import Block, Lot, LotStatus, Project

PROJECT_PAYLOAD = {
    "name": ("name", to_text),
    "location": ("location", to_text),
    "currency": ("currency", to_text),
    "defaultDownPayment": ("default_down_payment", to_decimal),
    "defaultFinancingMonths": ("default_financing_months", to_int),
    "maxDiscountPercentage": ("max_discount_percentage", to_decimal),
}
LOT_PAYLOAD = {
    "lotNumber": ("lot_number", to_text),
    "area": ("area", to_decimal),
    "price": ("price", to_decimal),
}
LOT_STATUS_ROLES = MANAGEMENT_ROLES + (RoleCode.SUPERVISOR,)


def _lot_counts(obj):
    return {
        "totalLots": obj.total_lots,
        "availableLots": obj.available_lots,
        "quotedLots": obj.quoted_lots,
        "reservedLots": obj.reserved_lots,
        "soldLots": obj.sold_lots,
    }


def project_to_item(project):
    return {
        "id": project.id,
        "name": project.name,
        "location": project.location,
        "currency": project.currency,
        "isActive": project.is_active,
        "defaultDownPayment": money(project.default_down_payment),
        "defaultFinancingMonths": project.default_financing_months,
        "maxDiscountPercentage": money(project.max_discount_percentage),
        "createdAt": iso(project.created_at),
        "modifiedAt": iso(project.modified_at),
        "totalBlocks": project.total_blocks,
        **_lot_counts(project),
    }


def block_to_item(block):
    return {
        "id": block.id,
        "name": block.name,
        "projectId": block.project_id,
        "projectName": block.project.name,
        "isActive": block.is_active,
        "createdAt": iso(block.created_at),
        "modifiedAt": iso(block.modified_at),
        **_lot_counts(block),
    }


def lot_to_item(lot):
    return {
        "id": lot.id,
        "lotNumber": lot.lot_number,
        "area": money(lot.area),
        "price": money(lot.price),
        "pricePerSquareMeter": money(lot.price_per_square_meter),
        "status": lot.status,
        "statusText": lot.get_status_display(),
        "blockId": lot.block_id,
        "blockName": lot.block.name,
        "projectId": lot.block.project_id,
        "projectName": lot.block.project.name,
        "currency": lot.block.project.currency,
        "isActive": lot.is_active,
        "createdAt": iso(lot.created_at),
        "modifiedAt": iso(lot.modified_at),
    }


def _project_response(project, status=200):
    project = services.project_queryset().get(pk=project.pk)
    return JsonResponse(project_to_item(project), status=status)


def _block_response(block, status=200):
    block = services.block_queryset().get(pk=block.pk)
    return JsonResponse(block_to_item(block), status=status)


def _lot_response(lot, status=200):
    lot = services.lot_queryset().get(pk=lot.pk)
    return JsonResponse(lot_to_item(lot), status=status)


# ── Proyectos ─────────────────────────────────────────────────

@csrf_exempt
@require_http_methods(["GET", "POST"])
@roles_required(*STAFF_ROLES)
@json_api
def api_projects(request):
    if request.method == "POST":
        denied = role_denied(request, MANAGEMENT_ROLES)
        if denied:
            return denied
        values = extract_changes(read_json(request), PROJECT_PAYLOAD)
        project = services.create_project(acting_user=request.user, **values)
        return _project_response(project, status=201)

    return JsonResponse(
        paginate(
            services.project_queryset(active_only=True),
            PageParams.from_request(request),
            project_to_item,
            search_fields=("name", "location"),
            order_fields={"name": "name", "location": "location", "createdat": "created_at"},
        )
    )


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_all(request):
    projects = services.project_queryset().order_by("-created_at")
    payload = [project_to_item(p) for p in projects]
    return JsonResponse({"items": payload, "count": len(payload)})


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_detail(request, project_id):
    project = get_object_or_404(services.project_queryset(), pk=project_id)
    if request.method == "GET":
        return JsonResponse(project_to_item(project))

    denied = role_denied(request, MANAGEMENT_ROLES)
    if denied:
        return denied
    if request.method == "DELETE":
        services.delete_project(project, acting_user=request.user)
        return JsonResponse({"deleted": True})

    changes = extract_changes(read_json(request), PROJECT_PAYLOAD)
    services.update_project(project, changes, acting_user=request.user)
    return _project_response(project)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_project_activate(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    services.activate_project(project, acting_user=request.user)
    return _project_response(project)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_project_deactivate(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    services.deactivate_project(project, acting_user=request.user)
    return _project_response(project)


# ── Bloques ───────────────────────────────────────────────────

@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_blocks(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    active_only = request.GET.get("includeInactive") != "true"
    return JsonResponse(
        paginate(
            services.block_queryset(project=project, active_only=active_only),
            PageParams.from_request(request),
            block_to_item,
            search_fields=("name",),
            order_fields={"name": "name", "createdat": "created_at"},
            default_ordering=("name",),
        )
    )


@csrf_exempt
@require_http_methods(["POST"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_block_create(request):
    data = read_json(request)
    project_id = to_int(data.get("projectId"), "projectId", required=True)
    block = services.create_block(
        project=Project.objects.filter(pk=project_id).first(),
        name=to_text(data.get("name"), "name"),
        acting_user=request.user,
    )
    return _block_response(block, status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_block_detail(request, block_id):
    block = get_object_or_404(services.block_queryset(), pk=block_id)
    if request.method == "GET":
        return JsonResponse(block_to_item(block))

    denied = role_denied(request, MANAGEMENT_ROLES)
    if denied:
        return denied
    if request.method == "DELETE":
        services.delete_block(block, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, {"name": ("name", to_text)})
    if data.get("projectId") is not None:
        changes["project"] = get_object_or_404(Project, pk=to_int(data["projectId"], "projectId"))
    services.update_block(block, changes, acting_user=request.user)
    return _block_response(block)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_block_activate(request, block_id):
    block = get_object_or_404(Block, pk=block_id)
    services.activate_block(block, acting_user=request.user)
    return _block_response(block)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_block_deactivate(request, block_id):
    block = get_object_or_404(Block, pk=block_id)
    services.deactivate_block(block, acting_user=request.user)
    return _block_response(block)


# ── Lotes ─────────────────────────────────────────────────────

LOT_ORDER_FIELDS = {
    "lotnumber": "lot_number",
    "price": "price",
    "area": "area",
    "status": "status",
    "createdat": "created_at",
}


def _paginated_lots(request, **filters):
    status = (request.GET.get("status") or "").strip()
    if status and status not in LotStatus.values:
        status = ""
    return JsonResponse(
        paginate(
            services.lot_queryset(status=status or None, **filters),
            PageParams.from_request(request),
            lot_to_item,
            search_fields=("lot_number",),
            order_fields=LOT_ORDER_FIELDS,
            default_ordering=("lot_number",),
        )
    )


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_block_lots(request, block_id):
    block = get_object_or_404(Block, pk=block_id)
    return _paginated_lots(request, block=block)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_lots(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    return _paginated_lots(request, project=project)


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
@json_api
def api_project_available_lots(request, project_id):
    project = get_object_or_404(Project, pk=project_id)
    payload = [lot_to_item(lot) for lot in services.available_lots(project)]
    return JsonResponse({"items": payload, "count": len(payload)})


@csrf_exempt
@require_http_methods(["POST"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_lot_create(request):
    data = read_json(request)
    block_id = to_int(data.get("blockId"), "blockId", required=True)
    block = Block.objects.select_related("project").filter(pk=block_id).first()
    lot = services.create_lot(
        block=block,
        lot_number=to_text(data.get("lotNumber"), "lotNumber"),
        area=to_decimal(data.get("area"), "area", required=True),
        price=to_decimal(data.get("price"), "price", required=True),
        acting_user=request.user,
    )
    return _lot_response(lot, status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@roles_required(*STAFF_ROLES)
@json_api
def api_lot_detail(request, lot_id):
    lot = get_object_or_404(services.lot_queryset(), pk=lot_id)
    if request.method == "GET":
        return JsonResponse(lot_to_item(lot))

    denied = role_denied(request, MANAGEMENT_ROLES)
    if denied:
        return denied
    if request.method == "DELETE":
        services.delete_lot(lot, acting_user=request.user)
        return JsonResponse({"deleted": True})

    data = read_json(request)
    changes = extract_changes(data, LOT_PAYLOAD)
    if data.get("blockId") is not None:
        changes["block"] = get_object_or_404(
            Block.objects.select_related("project"), pk=to_int(data["blockId"], "blockId")
        )
    services.update_lot(lot, changes, acting_user=request.user)
    return _lot_response(lot)


@csrf_exempt
@require_http_methods(["PUT", "PATCH", "POST"])
@roles_required(*LOT_STATUS_ROLES)
@json_api
def api_lot_status(request, lot_id):
    lot = get_object_or_404(services.lot_queryset(), pk=lot_id)
    data = read_json(request)
    new_status = to_text(data.get("status"), "status", required=True)
    services.change_lot_status(lot, new_status, acting_user=request.user)
    return _lot_response(lot)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_lot_activate(request, lot_id):
    lot = get_object_or_404(Lot, pk=lot_id)
    services.activate_lot(lot, acting_user=request.user)
    return _lot_response(lot)


@csrf_exempt
@require_http_methods(["POST", "PUT"])
@roles_required(*MANAGEMENT_ROLES)
@json_api
def api_lot_deactivate(request, lot_id):
    lot = get_object_or_404(Lot, pk=lot_id)
    services.deactivate_lot(lot, acting_user=request.user)
    return _lot_response(lot)
