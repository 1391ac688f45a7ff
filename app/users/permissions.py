from functools import wraps

from core.api import json_error

from .models import RoleCode


EXEMPT_URL_NAMES = {
    "users_api:login",
    "leads_api:landing_contact",
    "leads_api:landing_referral",
}
EXEMPT_NAMESPACES = {"admin"}

STAFF_ROLES = (
    RoleCode.ADMIN,
    RoleCode.SUPERVISOR,
    RoleCode.SALES_ADVISOR,
    RoleCode.MANAGER,
)
MANAGEMENT_ROLES = (RoleCode.ADMIN, RoleCode.MANAGER)


def get_user_roles(user) -> set:
    roles = set()
    if getattr(user, "role", None):
        roles.add(user.role)
    if user.is_authenticated:
        roles.update(user.roles.values_list("code", flat=True))
    return roles


def user_has_any_role(user, roles) -> bool:
    if not user.is_authenticated:
        return False
    if getattr(user, "is_superuser", False):
        return True
    user_roles = get_user_roles(user)
    if RoleCode.SUPERADMIN in user_roles:
        return True
    return bool(user_roles & set(roles))


def role_denied(request, roles):
    """Respuesta 401/403 si el usuario no puede actuar con ``roles``; ``None`` si puede."""
    if not request.user.is_authenticated:
        return json_error("Autenticación requerida", status=401, code="not_authenticated")
    if not user_has_any_role(request.user, roles):
        return json_error("No tiene permisos para esta acción", status=403, code="forbidden")
    return None


def roles_required(*roles):
    """Restringe una vista de API a los roles indicados (SUPERADMIN siempre pasa)."""

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            denied = role_denied(request, roles)
            if denied:
                return denied
            return view(request, *args, **kwargs)

        return wrapper

    return decorator
