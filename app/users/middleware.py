from django.urls import Resolver404, resolve

from core.api import json_error

from .permissions import EXEMPT_NAMESPACES, EXEMPT_URL_NAMES


class ApiAuthenticationMiddleware:
    """Exige sesión en todas las rutas ``/api/`` salvo las exentas."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.path_info.startswith("/api/"):
            return self.get_response(request)

        try:
            match = resolve(request.path_info)
        except Resolver404:
            return self.get_response(request)

        view_name = match.view_name
        if not view_name or view_name in EXEMPT_URL_NAMES:
            return self.get_response(request)

        ns = view_name.split(":")[0] if ":" in view_name else ""
        if ns in EXEMPT_NAMESPACES:
            return self.get_response(request)

        if not request.user.is_authenticated:
            return json_error("Autenticación requerida", status=401, code="not_authenticated")

        return self.get_response(request)
