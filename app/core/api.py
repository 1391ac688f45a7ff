import json
import logging
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from functools import wraps

from django.conf import settings
from django.http import Http404, JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .errors import BusinessRuleError

logger = logging.getLogger(__name__)


def json_error(message, status=400, code="bad_request"):
    return JsonResponse({"error": message, "code": code}, status=status)


class BadPayload(BusinessRuleError):
    default_code = "bad_request"


def json_api(view):
    """Traduce errores de negocio a JSON y registra los inesperados."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except BusinessRuleError as exc:
            logger.info("Regla de negocio en %s: %s", request.path, exc.message)
            return json_error(exc.message, status=exc.status, code=exc.code)
        except Http404:
            return json_error("Recurso no encontrado", status=404, code="not_found")
        except Exception:
            logger.exception("Error no controlado en %s %s", request.method, request.path)
            return json_error("Error interno del servidor", status=500, code="server_error")

    return wrapper


def read_json(request):
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        raise BadPayload("JSON inválido", code="invalid_json")
    if not isinstance(data, dict):
        raise BadPayload("Se esperaba un objeto JSON", code="invalid_json")
    return data


def to_decimal(value, field, required=False):
    if value in (None, ""):
        if required:
            raise BadPayload(f"{field} es requerido", code=f"missing_{field}")
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BadPayload(f"{field} inválido", code=f"invalid_{field}")
    # NaN e Infinity no son montos
    if not number.is_finite():
        raise BadPayload(f"{field} inválido", code=f"invalid_{field}")
    return number


def to_int(value, field, required=False):
    if value in (None, ""):
        if required:
            raise BadPayload(f"{field} es requerido", code=f"missing_{field}")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadPayload(f"{field} inválido", code=f"invalid_{field}")


def to_date(value, field, required=False):
    if value in (None, ""):
        if required:
            raise BadPayload(f"{field} es requerido", code=f"missing_{field}")
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise BadPayload(f"{field} inválida (YYYY-MM-DD)", code=f"invalid_{field}")


def to_datetime(value, field, required=False):
    """Acepta ISO 8601 completo o solo fecha (medianoche local)."""
    if value in (None, ""):
        if required:
            raise BadPayload(f"{field} es requerido", code=f"missing_{field}")
        return None
    text = str(value)
    try:
        parsed = parse_datetime(text)
        day = None if parsed else parse_date(text)
    except ValueError:
        raise BadPayload(f"{field} inválida", code=f"invalid_{field}")
    if parsed is None:
        if day is None:
            raise BadPayload(f"{field} inválida", code=f"invalid_{field}")
        parsed = datetime.combine(day, time.min)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def require_text(data, key):
    value = str(data.get(key) or "").strip()
    if not value:
        raise BadPayload(f"{key} es requerido", code=f"missing_{key}")
    return value


def money(value):
    return float(value) if value is not None else None


def iso(value):
    return value.isoformat() if value else None


def _extract_api_token(request):
    auth = request.headers.get("Authorization", "").strip()
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return request.headers.get("X-API-Key", "").strip()


def check_api_token(request, setting_name):
    expected = (getattr(settings, setting_name, "") or "").strip()
    if not expected:
        return None
    if _extract_api_token(request) != expected:
        return json_error("Token inválido", status=401, code="invalid_token")
    return None


def to_text(value, field, required=False):
    value = str(value).strip() if value is not None else ""
    if required and not value:
        raise BadPayload(f"{field} es requerido", code=f"missing_{field}")
    return value


def to_bool(value, field, required=False):
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "si", "sí"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", ""):
        return False
    if isinstance(value, int):
        return bool(value)
    raise BadPayload(f"{field} inválido", code=f"invalid_{field}")


def extract_changes(data, mapping):
    """
    Convierte las claves presentes del payload según ``mapping``:
    ``{"claveJson": ("campo_modelo", conversor)}``. Las ausentes se omiten
    para soportar actualizaciones parciales.
    """
    changes = {}
    for key, (field, convert) in mapping.items():
        if key in data:
            changes[field] = convert(data[key], field)
    return changes
