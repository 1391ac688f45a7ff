import logging

from django.contrib.auth import authenticate, login, logout
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.api import json_api, json_error, read_json

from .models import RoleCode, User
from .permissions import STAFF_ROLES, get_user_roles, roles_required

logger = logging.getLogger(__name__)


def user_to_item(user):
    return {
        "id": user.id,
        "username": user.username,
        "name": user.get_full_name() or user.username,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "roles": sorted(get_user_roles(user)),
        "isActive": user.is_active,
    }


@csrf_exempt
@require_http_methods(["POST"])
@json_api
def api_login(request):
    data = read_json(request)
    identifier = (data.get("username") or data.get("email") or "").strip()
    password = data.get("password") or ""
    if not identifier or not password:
        return json_error("Usuario y contraseña son requeridos", code="missing_credentials")

    username = identifier
    if "@" in identifier:
        user_obj = User.objects.filter(email__iexact=identifier).first()
        if user_obj:
            username = user_obj.username
    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.info("Intento de acceso fallido para %s", identifier)
        return json_error("Credenciales inválidas", status=401, code="invalid_credentials")

    login(request, user)
    return JsonResponse({"user": user_to_item(user)})


@csrf_exempt
@require_http_methods(["POST"])
def api_logout(request):
    logout(request)
    return JsonResponse({"ok": True})


@require_http_methods(["GET"])
def api_me(request):
    return JsonResponse({"user": user_to_item(request.user)})


@require_http_methods(["GET"])
@roles_required(*STAFF_ROLES)
def api_user_list(request):
    users = User.objects.filter(is_active=True).order_by("first_name", "last_name", "username")
    role = (request.GET.get("role") or "").strip().upper()
    if role:
        if role not in RoleCode.values:
            return json_error("Rol inválido", code="invalid_role")
        users = users.filter(role=role)
    payload = [user_to_item(u) for u in users]
    return JsonResponse({"items": payload, "count": len(payload)})
