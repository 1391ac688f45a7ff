"""
Reglas de negocio del inventario: proyectos, bloques y lotes.

Todas las operaciones de escritura reciben ``acting_user`` para auditoría y
lanzan ``BusinessRuleError``/``ConflictError`` ante violaciones de reglas.
"""
import logging
from decimal import Decimal

from django.db import IntegrityError, transaction

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from core.models import AuditLog
from core.normalization import normalize_currency

from .models import Block, Lot, LotStatus, Project

logger = logging.getLogger(__name__)

PROJECT_FIELDS = (
    "name",
    "location",
    "currency",
    "default_down_payment",
    "default_financing_months",
    "max_discount_percentage",
)
BLOCK_FIELDS = ("name", "project")
LOT_FIELDS = ("lot_number", "area", "price", "block")


# ── Validaciones ──────────────────────────────────────────────

def _clean_required(value, label):
    value = (value or "").strip()
    if not value:
        raise BusinessRuleError(f"{label} es requerido", code="required")
    return value


def _check_percentage(value, label):
    if value is None:
        return None
    value = Decimal(value)
    if value < 0 or value > 100:
        raise BusinessRuleError(f"{label} debe estar entre 0 y 100", code="invalid_percentage")
    return value


def _check_months(value):
    if value is None:
        return None
    if value < 1 or value > 360:
        raise BusinessRuleError(
            "Los meses de financiación deben estar entre 1 y 360", code="invalid_months"
        )
    return value


def _check_positive(value, label):
    if value is None or Decimal(value) <= 0:
        raise BusinessRuleError(f"{label} debe ser mayor a cero", code="invalid_amount")
    return Decimal(value)


def _clean_project_values(values):
    cleaned = dict(values)
    if "name" in cleaned:
        cleaned["name"] = _clean_required(cleaned["name"], "El nombre del proyecto")
    if "location" in cleaned:
        cleaned["location"] = _clean_required(cleaned["location"], "La ubicación")
    if "currency" in cleaned:
        currency = normalize_currency(cleaned["currency"])
        if len(currency) != 3 or not currency.isalpha():
            raise BusinessRuleError("La moneda debe ser un código de 3 letras", code="invalid_currency")
        cleaned["currency"] = currency
    if "default_down_payment" in cleaned:
        cleaned["default_down_payment"] = _check_percentage(
            cleaned["default_down_payment"], "La cuota inicial"
        )
    if "max_discount_percentage" in cleaned:
        cleaned["max_discount_percentage"] = _check_percentage(
            cleaned["max_discount_percentage"], "El descuento máximo"
        )
    if "default_financing_months" in cleaned:
        cleaned["default_financing_months"] = _check_months(cleaned["default_financing_months"])
    return cleaned


def _ensure_unique_project_name(name, exclude_id=None):
    qs = Project.objects.filter(name__iexact=name)
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ConflictError(f"Ya existe un proyecto con el nombre '{name}'", code="duplicate_project")


def _ensure_unique_block_name(project, name, exclude_id=None):
    qs = Block.objects.filter(project=project, name__iexact=name)
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ConflictError(
            f"Ya existe un bloque con el nombre '{name}' en este proyecto", code="duplicate_block"
        )


def _ensure_unique_lot_number(block, lot_number, exclude_id=None):
    qs = Lot.objects.filter(block=block, lot_number__iexact=lot_number)
    if exclude_id:
        qs = qs.exclude(pk=exclude_id)
    if qs.exists():
        raise ConflictError(
            f"Ya existe un lote con el número '{lot_number}' en este bloque", code="duplicate_lot"
        )


def _save_unique(instance, conflict_message, conflict_code, **save_kwargs):
    """Guarda respaldando la validación previa con la restricción única de la base."""
    try:
        with transaction.atomic():
            instance.save(**save_kwargs)
    except IntegrityError:
        raise ConflictError(conflict_message, code=conflict_code)
    return instance


def _set_active(instance, active, acting_user):
    instance.is_active = active
    instance.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(
        instance,
        AuditLog.Action.UPDATE,
        acting_user,
        "Activado" if active else "Desactivado",
    )
    return instance


# ── Proyectos ─────────────────────────────────────────────────

@transaction.atomic
def create_project(*, acting_user=None, **values):
    values = _clean_project_values({k: v for k, v in values.items() if k in PROJECT_FIELDS})
    for required in ("name", "location", "currency"):
        if not values.get(required):
            raise BusinessRuleError(f"{required} es requerido", code=f"missing_{required}")
    _ensure_unique_project_name(values["name"])

    project = _save_unique(
        Project(**values),
        f"Ya existe un proyecto con el nombre '{values['name']}'",
        "duplicate_project",
    )
    AuditLog.record(project, AuditLog.Action.CREATE, acting_user)
    logger.info("Proyecto creado: %s (%s)", project.name, project.pk)
    return project


@transaction.atomic
def update_project(project, changes, acting_user=None):
    changes = _clean_project_values({k: v for k, v in changes.items() if k in PROJECT_FIELDS})
    if "name" in changes and changes["name"].lower() != project.name.lower():
        _ensure_unique_project_name(changes["name"], exclude_id=project.pk)
    for field, value in changes.items():
        setattr(project, field, value)
    _save_unique(project, f"Ya existe un proyecto con el nombre '{project.name}'", "duplicate_project")
    AuditLog.record(project, AuditLog.Action.UPDATE, acting_user)
    return project


@transaction.atomic
def delete_project(project, acting_user=None):
    if project.has_locked_lots():
        raise ConflictError(
            "No se puede eliminar un proyecto que tiene lotes reservados o vendidos",
            code="project_has_locked_lots",
        )
    AuditLog.record(project, AuditLog.Action.DELETE, acting_user, project.name)
    logger.info("Proyecto eliminado: %s (%s)", project.name, project.pk)
    project.delete()


def activate_project(project, acting_user=None):
    return _set_active(project, True, acting_user)


def deactivate_project(project, acting_user=None):
    return _set_active(project, False, acting_user)


def project_queryset(active_only=False):
    qs = Project.objects.with_lot_counts()
    if active_only:
        qs = qs.filter(is_active=True)
    return qs


# ── Bloques ───────────────────────────────────────────────────

def _require_active_project(project):
    if project is None:
        raise BusinessRuleError("El proyecto no existe", code="project_not_found")
    if not project.is_active:
        raise BusinessRuleError(
            "No se puede crear un bloque en un proyecto inactivo", code="project_inactive"
        )
    return project


@transaction.atomic
def create_block(*, project, name, acting_user=None):
    _require_active_project(project)
    name = _clean_required(name, "El nombre del bloque")
    _ensure_unique_block_name(project, name)

    block = _save_unique(
        Block(project=project, name=name),
        f"Ya existe un bloque con el nombre '{name}' en este proyecto",
        "duplicate_block",
    )
    AuditLog.record(block, AuditLog.Action.CREATE, acting_user)
    logger.info("Bloque creado: %s en proyecto %s", block.name, project.pk)
    return block


@transaction.atomic
def update_block(block, changes, acting_user=None):
    target_project = changes.get("project") or block.project
    if target_project.pk != block.project_id:
        if not target_project.is_active:
            raise BusinessRuleError(
                "No se puede mover un bloque a un proyecto inactivo", code="project_inactive"
            )
    name = block.name
    if "name" in changes:
        name = _clean_required(changes["name"], "El nombre del bloque")
    if name.lower() != block.name.lower() or target_project.pk != block.project_id:
        _ensure_unique_block_name(target_project, name, exclude_id=block.pk)

    block.name = name
    block.project = target_project
    _save_unique(
        block,
        f"Ya existe un bloque con el nombre '{name}' en este proyecto",
        "duplicate_block",
    )
    AuditLog.record(block, AuditLog.Action.UPDATE, acting_user)
    return block


@transaction.atomic
def delete_block(block, acting_user=None):
    if block.has_locked_lots():
        raise ConflictError(
            "No se puede eliminar un bloque que tiene lotes reservados o vendidos",
            code="block_has_locked_lots",
        )
    AuditLog.record(block, AuditLog.Action.DELETE, acting_user, block.name)
    block.delete()


def activate_block(block, acting_user=None):
    return _set_active(block, True, acting_user)


def deactivate_block(block, acting_user=None):
    return _set_active(block, False, acting_user)


def block_queryset(project=None, active_only=False):
    qs = Block.objects.select_related("project").with_lot_counts()
    if project is not None:
        qs = qs.filter(project=project)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs


# ── Lotes ─────────────────────────────────────────────────────

def _require_active_block(block):
    if block is None:
        raise BusinessRuleError("El bloque no existe", code="block_not_found")
    if not block.is_active:
        raise BusinessRuleError("No se puede crear un lote en un bloque inactivo", code="block_inactive")
    if not block.project.is_active:
        raise BusinessRuleError(
            "No se puede crear un lote en un proyecto inactivo", code="project_inactive"
        )
    return block


@transaction.atomic
def create_lot(*, block, lot_number, area, price, acting_user=None):
    _require_active_block(block)
    lot_number = _clean_required(lot_number, "El número de lote")
    area = _check_positive(area, "El área")
    price = _check_positive(price, "El precio")
    _ensure_unique_lot_number(block, lot_number)

    lot = _save_unique(
        Lot(block=block, lot_number=lot_number, area=area, price=price, status=LotStatus.AVAILABLE),
        f"Ya existe un lote con el número '{lot_number}' en este bloque",
        "duplicate_lot",
    )
    AuditLog.record(lot, AuditLog.Action.CREATE, acting_user)
    return lot


@transaction.atomic
def update_lot(lot, changes, acting_user=None):
    changes = {k: v for k, v in changes.items() if k in LOT_FIELDS}
    if "area" in changes:
        changes["area"] = _check_positive(changes["area"], "El área")
    if "price" in changes:
        changes["price"] = _check_positive(changes["price"], "El precio")
    if "lot_number" in changes:
        changes["lot_number"] = _clean_required(changes["lot_number"], "El número de lote")

    target_block = changes.get("block") or lot.block
    if target_block.pk != lot.block_id:
        _require_active_block(target_block)
    lot_number = changes.get("lot_number", lot.lot_number)
    if lot_number.lower() != lot.lot_number.lower() or target_block.pk != lot.block_id:
        _ensure_unique_lot_number(target_block, lot_number, exclude_id=lot.pk)

    for field, value in changes.items():
        setattr(lot, field, value)
    _save_unique(
        lot,
        f"Ya existe un lote con el número '{lot_number}' en este bloque",
        "duplicate_lot",
    )
    AuditLog.record(lot, AuditLog.Action.UPDATE, acting_user)
    return lot


def change_lot_status(lot, new_status, acting_user=None):
    """Mueve el lote en la máquina de estados; rechaza transiciones no permitidas."""
    if new_status not in LotStatus.values:
        raise BusinessRuleError(f"Estado de lote inválido: {new_status}", code="invalid_status")
    new_status = LotStatus(new_status)
    if lot.status == new_status:
        return lot
    if not lot.can_transition_to(new_status):
        raise InvalidTransitionError(
            f"No se puede cambiar el lote {lot.lot_number} de "
            f"{lot.get_status_display()} a {new_status.label}"
        )
    previous = lot.get_status_display()
    lot.status = new_status
    lot.save(update_fields=["status", "modified_at"])
    AuditLog.record(
        lot,
        AuditLog.Action.UPDATE,
        acting_user,
        f"Estado {previous} -> {lot.get_status_display()}",
    )
    logger.info("Lote %s: %s -> %s", lot.pk, previous, lot.get_status_display())
    return lot


@transaction.atomic
def delete_lot(lot, acting_user=None):
    if lot.is_locked:
        raise ConflictError(
            "No se puede eliminar un lote reservado o vendido", code="lot_locked"
        )
    AuditLog.record(lot, AuditLog.Action.DELETE, acting_user, lot.lot_number)
    lot.delete()


def activate_lot(lot, acting_user=None):
    return _set_active(lot, True, acting_user)


def deactivate_lot(lot, acting_user=None):
    if lot.is_locked:
        raise ConflictError(
            "No se puede desactivar un lote reservado o vendido", code="lot_locked"
        )
    return _set_active(lot, False, acting_user)


def lot_queryset(block=None, project=None, status=None, active_only=False):
    qs = Lot.objects.select_related("block__project")
    if block is not None:
        qs = qs.filter(block=block)
    if project is not None:
        qs = qs.filter(block__project=project)
    if status:
        qs = qs.filter(status=status)
    if active_only:
        qs = qs.filter(is_active=True, block__is_active=True, block__project__is_active=True)
    return qs


def available_lots(project):
    return lot_queryset(project=project, status=LotStatus.AVAILABLE, active_only=True)
