"""
Cotizaciones y reservas.

El estado del lote acompaña al de la cotización/reserva:
emitir -> Cotizado, aceptar -> Reservado, cancelar/anular -> Disponible,
reserva pagada -> Vendido.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from core.models import AuditLog
from core.records import CoOwner, PaymentHistoryEntry, parse_records
from core.sequences import create_with_code
from inventory.models import Lot, LotStatus
from inventory.services import change_lot_status
from leads.models import Lead

from .models import TWO_PLACES, PaymentMethod, Quotation, Reservation

logger = logging.getLogger(__name__)

QUOTATION_EDITABLE_FIELDS = (
    "discount",
    "down_payment",
    "months_financed",
    "currency",
    "exchange_rate",
    "quotation_date",
    "advisor",
)
RESERVATION_EDITABLE_FIELDS = (
    "reservation_date",
    "amount_paid",
    "total_amount_required",
    "remaining_amount",
    "currency",
    "payment_method",
    "bank_name",
    "exchange_rate",
    "expires_at",
    "notified",
    "schedule",
    "payment_history",
    "co_owners",
)


# ── Validaciones de montos ───────────────────────────────────

def _check_discount(discount, total_price, project):
    discount = Decimal(discount)
    if discount < 0:
        raise BusinessRuleError("El descuento no puede ser negativo", code="invalid_discount")
    if discount > total_price:
        raise BusinessRuleError("El descuento no puede superar el precio del lote", code="invalid_discount")
    max_pct = project.max_discount_percentage if project else None
    if max_pct is not None:
        max_discount = (total_price * max_pct / Decimal("100")).quantize(TWO_PLACES)
        if discount > max_discount:
            raise BusinessRuleError(
                f"El descuento supera el máximo permitido ({max_pct}%) para el proyecto",
                code="discount_exceeds_max",
            )
    return discount


def _check_down_payment(value):
    value = Decimal(value)
    if value < 0 or value > 100:
        raise BusinessRuleError("La cuota inicial debe estar entre 0 y 100", code="invalid_down_payment")
    return value


def _check_months(value):
    if value < 0 or value > 360:
        raise BusinessRuleError("Los meses financiados deben estar entre 0 y 360", code="invalid_months")
    return value


def _check_exchange_rate(value):
    value = Decimal(value)
    if value <= 0:
        raise BusinessRuleError("El tipo de cambio debe ser mayor a cero", code="invalid_exchange_rate")
    return value


def _check_amount(value, label):
    value = Decimal(value)
    if value < 0:
        raise BusinessRuleError(f"{label} no puede ser negativo", code="invalid_amount")
    return value


# ── Cotizaciones ─────────────────────────────────────────────

@transaction.atomic
def create_quotation(
    *,
    lead,
    lot,
    advisor,
    discount=None,
    down_payment=None,
    months_financed=None,
    currency=None,
    exchange_rate=None,
    quotation_date=None,
    acting_user=None,
):
    if lead is None or not lead.is_active:
        raise BusinessRuleError("El lead no existe", code="lead_not_found")
    if advisor is None or not advisor.is_active:
        raise BusinessRuleError("El asesor no existe", code="advisor_not_found")
    if lot is None:
        raise BusinessRuleError("El lote no existe", code="lot_not_found")

    lot = Lot.objects.select_for_update().select_related("block__project").get(pk=lot.pk)
    project = lot.block.project
    if not lot.is_fully_active:
        raise BusinessRuleError(
            "El lote, su bloque o su proyecto están inactivos", code="lot_inactive"
        )
    if lot.status != LotStatus.AVAILABLE:
        raise BusinessRuleError(
            f"El lote {lot.lot_number} no está disponible ({lot.get_status_display()})",
            code="lot_not_available",
        )
    if Quotation.objects.filter(lot=lot, status=Quotation.Status.ISSUED).exists():
        raise ConflictError(
            "Ya existe una cotización emitida para este lote", code="lot_already_quoted"
        )

    quotation = Quotation(
        lead=lead,
        lot=lot,
        advisor=advisor,
        total_price=lot.price,
        area_at_quotation=lot.area,
        price_per_m2_at_quotation=lot.price_per_square_meter,
        project_name=project.name,
        block_name=lot.block.name,
        lot_number=lot.lot_number,
        discount=_check_discount(discount or 0, lot.price, project),
        down_payment=_check_down_payment(
            down_payment if down_payment is not None else (project.default_down_payment or 0)
        ),
        months_financed=_check_months(
            months_financed if months_financed is not None else (project.default_financing_months or 0)
        ),
        currency=(currency or project.currency).upper(),
        exchange_rate=_check_exchange_rate(exchange_rate if exchange_rate is not None else 1),
        quotation_date=quotation_date or timezone.localdate(),
    )
    quotation.recalculate()
    quotation.reset_validity()

    def build(code):
        quotation.code = code
        quotation.save()
        return quotation

    create_with_code(Quotation, "COT", build)
    change_lot_status(lot, LotStatus.QUOTED, acting_user)
    AuditLog.record(quotation, AuditLog.Action.CREATE, acting_user)
    logger.info("Cotización %s emitida para lote %s", quotation.code, lot.pk)
    return quotation


@transaction.atomic
def update_quotation(quotation, changes, acting_user=None):
    if quotation.status != Quotation.Status.ISSUED:
        raise BusinessRuleError(
            "Solo se pueden modificar cotizaciones emitidas", code="quotation_not_editable"
        )
    changes = {k: v for k, v in changes.items() if k in QUOTATION_EDITABLE_FIELDS}
    project = quotation.lot.block.project if quotation.lot else None

    if "discount" in changes:
        quotation.discount = _check_discount(changes["discount"], quotation.total_price, project)
    if "down_payment" in changes:
        quotation.down_payment = _check_down_payment(changes["down_payment"])
    if "months_financed" in changes:
        quotation.months_financed = _check_months(changes["months_financed"])
    if "exchange_rate" in changes:
        quotation.exchange_rate = _check_exchange_rate(changes["exchange_rate"])
    if changes.get("currency"):
        quotation.currency = changes["currency"].upper()
    if changes.get("advisor") is not None:
        quotation.advisor = changes["advisor"]
    if "discount" in changes or "down_payment" in changes:
        quotation.recalculate()
    if changes.get("quotation_date"):
        quotation.quotation_date = changes["quotation_date"]
        quotation.reset_validity()

    quotation.save()
    AuditLog.record(quotation, AuditLog.Action.UPDATE, acting_user)
    return quotation


def _has_open_reservation(quotation):
    return quotation.reservations.filter(is_active=True).exclude(
        status=Reservation.Status.ANULATED
    ).exists()


@transaction.atomic
def change_quotation_status(quotation, new_status, acting_user=None):
    if new_status not in Quotation.Status.values:
        raise BusinessRuleError(f"Estado de cotización inválido: {new_status}", code="invalid_status")
    new_status = Quotation.Status(new_status)
    if quotation.status == new_status:
        return quotation
    if not quotation.can_transition_to(new_status):
        raise InvalidTransitionError(
            f"No se puede pasar la cotización {quotation.code} de "
            f"{quotation.get_status_display()} a {new_status.label}"
        )
    if new_status == Quotation.Status.ACCEPTED and quotation.is_expired:
        raise BusinessRuleError(
            f"La cotización {quotation.code} está vencida", code="quotation_expired"
        )
    if new_status == Quotation.Status.CANCELED and _has_open_reservation(quotation):
        raise ConflictError(
            "La cotización tiene una reserva activa", code="quotation_has_reservation"
        )

    previous = quotation.get_status_display()
    quotation.status = new_status
    quotation.save(update_fields=["status", "modified_at"])

    if quotation.lot_id:
        lot = Lot.objects.select_for_update().get(pk=quotation.lot_id)
        target = LotStatus.RESERVED if new_status == Quotation.Status.ACCEPTED else LotStatus.AVAILABLE
        change_lot_status(lot, target, acting_user)

    AuditLog.record(
        quotation,
        AuditLog.Action.UPDATE,
        acting_user,
        f"Estado {previous} -> {quotation.get_status_display()}",
    )
    logger.info("Cotización %s: %s -> %s", quotation.code, previous, quotation.get_status_display())
    return quotation


def release_lot(quotation, acting_user=None):
    """Cancela una cotización emitida y libera su lote."""
    if quotation.status != Quotation.Status.ISSUED:
        raise BusinessRuleError(
            "Solo se puede liberar el lote de una cotización emitida", code="quotation_not_issued"
        )
    return change_quotation_status(quotation, Quotation.Status.CANCELED, acting_user)


@transaction.atomic
def delete_quotation(quotation, acting_user=None):
    if quotation.reservations.exists():
        raise ConflictError(
            "No se puede eliminar una cotización con reservas", code="quotation_has_reservation"
        )
    # Sin reservas, el lote de una cotización emitida o aceptada queda libre.
    if quotation.status != Quotation.Status.CANCELED and quotation.lot_id:
        lot = Lot.objects.select_for_update().get(pk=quotation.lot_id)
        if lot.status in (LotStatus.QUOTED, LotStatus.RESERVED):
            change_lot_status(lot, LotStatus.AVAILABLE, acting_user)
    AuditLog.record(quotation, AuditLog.Action.DELETE, acting_user, quotation.code)
    logger.info("Cotización %s eliminada", quotation.code)
    quotation.delete()


def quotation_queryset():
    return Quotation.objects.select_related("lead__client", "lot__block__project", "advisor")


# ── Reservas ─────────────────────────────────────────────────

def _clean_reservation_values(values):
    cleaned = {k: v for k, v in values.items() if k in RESERVATION_EDITABLE_FIELDS}
    for key, label in (
        ("amount_paid", "El monto pagado"),
        ("total_amount_required", "El monto requerido"),
        ("remaining_amount", "El saldo"),
    ):
        if cleaned.get(key) is not None:
            cleaned[key] = _check_amount(cleaned[key], label)
    if cleaned.get("exchange_rate") is not None:
        cleaned["exchange_rate"] = _check_exchange_rate(cleaned["exchange_rate"])
    if cleaned.get("currency") and cleaned["currency"] not in Reservation.Currency.values:
        raise BusinessRuleError(f"Moneda inválida: {cleaned['currency']}", code="invalid_currency")
    if cleaned.get("payment_method") and cleaned["payment_method"] not in PaymentMethod.values:
        raise BusinessRuleError(
            f"Método de pago inválido: {cleaned['payment_method']}", code="invalid_payment_method"
        )
    if "payment_history" in cleaned:
        cleaned["payment_history"] = parse_records(cleaned["payment_history"], PaymentHistoryEntry)
    if "co_owners" in cleaned:
        cleaned["co_owners"] = parse_records(cleaned["co_owners"], CoOwner)
    return {k: v for k, v in cleaned.items() if v is not None}


@transaction.atomic
def create_reservation(*, client, quotation, acting_user=None, **values):
    if client is None or not client.is_active:
        raise BusinessRuleError("El cliente no existe o está inactivo", code="client_not_found")
    if quotation is None:
        raise BusinessRuleError("La cotización no existe", code="quotation_not_found")
    values = _clean_reservation_values(values)
    quotation = Quotation.objects.select_for_update().get(pk=quotation.pk)
    if quotation.status == Quotation.Status.CANCELED:
        raise BusinessRuleError(
            "No se puede reservar una cotización cancelada", code="quotation_canceled"
        )
    if _has_open_reservation(quotation):
        raise ConflictError(
            "Ya existe una reserva activa para esta cotización", code="duplicate_reservation"
        )
    if quotation.status == Quotation.Status.ISSUED:
        change_quotation_status(quotation, Quotation.Status.ACCEPTED, acting_user)

    reservation = Reservation(client=client, quotation=quotation, **values)
    if "remaining_amount" not in values:
        reservation.remaining_amount = max(
            reservation.total_amount_required - reservation.amount_paid, Decimal("0")
        )
    if "expires_at" not in values:
        reservation.expires_at = timezone.now() + timedelta(days=settings.RESERVATION_EXPIRATION_DAYS)
    reservation.status = Reservation.Status.ISSUED
    reservation.save()

    AuditLog.record(reservation, AuditLog.Action.CREATE, acting_user)
    logger.info("Reserva %s creada para cotización %s", reservation.pk, quotation.code)
    return reservation


@transaction.atomic
def update_reservation(reservation, changes, acting_user=None):
    if reservation.status == Reservation.Status.ANULATED:
        raise BusinessRuleError("No se puede modificar una reserva anulada", code="reservation_annulled")
    changes = _clean_reservation_values(changes)
    for field, value in changes.items():
        setattr(reservation, field, value)
    if {"amount_paid", "total_amount_required"} & changes.keys() and "remaining_amount" not in changes:
        reservation.remaining_amount = max(
            reservation.total_amount_required - reservation.amount_paid, Decimal("0")
        )
    reservation.save()
    AuditLog.record(reservation, AuditLog.Action.UPDATE, acting_user)
    return reservation


@transaction.atomic
def change_reservation_status(reservation, new_status, acting_user=None):
    if new_status not in Reservation.Status.values:
        raise BusinessRuleError(f"Estado de reserva inválido: {new_status}", code="invalid_status")
    new_status = Reservation.Status(new_status)
    if reservation.status == new_status:
        return reservation
    if not reservation.can_transition_to(new_status):
        raise InvalidTransitionError(
            f"No se puede pasar la reserva de {reservation.get_status_display()} a {new_status.label}"
        )

    previous = reservation.get_status_display()
    reservation.status = new_status
    reservation.save(update_fields=["status", "modified_at"])
    quotation = reservation.quotation

    if new_status == Reservation.SETTLED:
        if quotation.lot_id:
            lot = Lot.objects.select_for_update().get(pk=quotation.lot_id)
            change_lot_status(lot, LotStatus.SOLD, acting_user)
        lead = quotation.lead
        lead.status = Lead.Status.COMPLETED
        lead.completion_reason = Lead.CompletionReason.SALE
        lead.save(update_fields=["status", "completion_reason", "modified_at"])
    else:
        change_quotation_status(quotation, Quotation.Status.CANCELED, acting_user)

    AuditLog.record(
        reservation,
        AuditLog.Action.UPDATE,
        acting_user,
        f"Estado {previous} -> {reservation.get_status_display()}",
    )
    logger.info("Reserva %s: %s -> %s", reservation.pk, previous, reservation.get_status_display())
    return reservation


def delete_reservation(reservation, acting_user=None):
    reservation.is_active = False
    reservation.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(reservation, AuditLog.Action.DELETE, acting_user)
    return reservation


def reservation_queryset(active_only=True):
    qs = Reservation.objects.select_related(
        "client", "quotation__lot__block__project", "quotation__lead", "quotation__advisor"
    )
    if active_only:
        qs = qs.filter(is_active=True)
    return qs
