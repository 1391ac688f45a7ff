import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .errors import ConflictError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


def next_code(model, prefix, year=None, field="code", width=5):
    """Siguiente código ``{prefix}-{year}-{seq}`` a partir del mayor existente."""
    year = year or timezone.localdate().year
    head = f"{prefix}-{year}-"
    last_seq = 0
    for code in model.objects.filter(**{f"{field}__startswith": head}).values_list(field, flat=True):
        suffix = code[len(head):]
        if suffix.isdigit():
            last_seq = max(last_seq, int(suffix))
    return f"{head}{last_seq + 1:0{width}d}"


def create_with_code(model, prefix, build, year=None, field="code"):
    """
    Ejecuta ``build(code)`` con el siguiente código libre.

    El campo tiene restricción única; si otra petición tomó el mismo código
    se recalcula y se reintenta.
    """
    for attempt in range(1, MAX_ATTEMPTS + 1):
        code = next_code(model, prefix, year=year, field=field)
        try:
            with transaction.atomic():
                return build(code)
        except IntegrityError:
            if not model.objects.filter(**{field: code}).exists():
                raise
            logger.warning("Código %s ya tomado (intento %s/%s)", code, attempt, MAX_ATTEMPTS)
    raise ConflictError(
        f"No se pudo generar un código {prefix} único, intente nuevamente",
        code="code_generation_conflict",
    )
