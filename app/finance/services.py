"""
Cronograma de cuotas y conciliación de pagos.

Cada ``PaymentTransaction`` se reparte entre cuotas mediante filas de
``PaymentAllocation``; el flag ``Payment.paid`` siempre se recalcula desde
la suma de asignaciones.
"""
import logging
from decimal import ROUND_DOWN, Decimal

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.db.models import DecimalField, Sum, Value
from django.db.models.functions import Coalesce

from core.errors import BusinessRuleError
from core.models import AuditLog
from sales.models import TWO_PLACES, PaymentMethod

from .models import Payment, PaymentAllocation, PaymentTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _with_allocated(qs):
    return qs.annotate(
        allocated=Coalesce(
            Sum("allocations__amount"),
            Value(ZERO),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
    )


# ── Cronograma ───────────────────────────────────────────────

def split_amount(total, parts):
    """Divide ``total`` en ``parts`` cuotas; la última absorbe el redondeo."""
    base = (total / parts).quantize(TWO_PLACES, rounding=ROUND_DOWN)
    return [base] * (parts - 1) + [total - base * (parts - 1)]


@transaction.atomic
def generate_schedule(reservation, acting_user=None):
    quotation = reservation.quotation
    months = quotation.months_financed
    if not months:
        raise BusinessRuleError(
            "La cotización no tiene meses de financiamiento", code="no_financing"
        )
    if reservation.payments.exists():
        raise BusinessRuleError(
            "La reserva ya tiene un cronograma de pagos", code="schedule_exists"
        )
    if reservation.status != reservation.Status.ISSUED:
        raise BusinessRuleError(
            "Solo se genera cronograma para reservas emitidas", code="reservation_not_issued"
        )

    payments = Payment.objects.bulk_create(
        [
            Payment(
                reservation=reservation,
                due_date=reservation.reservation_date + relativedelta(months=n),
                amount_due=amount,
            )
            for n, amount in enumerate(split_amount(quotation.amount_financed, months), start=1)
        ]
    )
    AuditLog.record(
        reservation,
        AuditLog.Action.UPDATE,
        acting_user,
        f"Cronograma generado: {len(payments)} cuotas",
    )
    logger.info("Cronograma de %s cuotas para reserva %s", len(payments), reservation.pk)
    return payments


def payment_schedule(reservation):
    return list(_with_allocated(reservation.payments.all()).order_by("due_date", "pk"))


def pending_payments(reservation):
    return [p for p in payment_schedule(reservation) if p.remaining > 0]


def quota_status(reservation):
    """
    Resumen para registrar pagos: mínimo de cuotas a pagar (sin abono alguno),
    máximo (con cualquier saldo) y saldo total.
    """
    schedule = payment_schedule(reservation)
    return {
        "min_quotas_to_pay": sum(1 for p in schedule if p.remaining > 0 and p.amount_paid <= 0),
        "max_quotas_to_pay": sum(1 for p in schedule if p.remaining > 0),
        "total_amount_remaining": sum((p.remaining for p in schedule), ZERO),
        "pending": [p for p in schedule if p.remaining > 0],
    }


def recompute_paid_flags(payments):
    ids = [p.pk for p in payments]
    updated = []
    for payment in _with_allocated(Payment.objects.filter(pk__in=ids)):
        is_paid = payment.remaining <= 0
        if payment.paid != is_paid:
            payment.paid = is_paid
            updated.append(payment)
    if updated:
        Payment.objects.bulk_update(updated, ["paid"])
    return len(updated)


# ── Transacciones ────────────────────────────────────────────

def _check_payment_values(amount_paid, payment_method):
    if amount_paid is None or Decimal(amount_paid) <= 0:
        raise BusinessRuleError("El monto debe ser mayor a 0", code="invalid_amount")
    if payment_method and payment_method not in PaymentMethod.values:
        raise BusinessRuleError(
            f"Método de pago inválido: {payment_method}", code="invalid_payment_method"
        )
    return Decimal(amount_paid)


def _locked_payments(payment_ids):
    ids = set(payment_ids)
    payments = list(Payment.objects.select_for_update().filter(pk__in=ids))
    if len(payments) != len(ids):
        raise BusinessRuleError("Uno o más pagos no existen", code="payment_not_found")
    return payments


def _auto_select(reservation, amount, start_from_last):
    """Elige cuotas pendientes hasta cubrir ``amount``."""
    ordering = ("-due_date", "-pk") if start_from_last else ("due_date", "pk")
    locked = Payment.objects.select_for_update().filter(reservation=reservation)
    ids = list(locked.values_list("pk", flat=True))
    pending = [
        p
        for p in _with_allocated(Payment.objects.filter(pk__in=ids)).order_by(*ordering)
        if p.remaining > 0
    ]
    chosen, covered = [], ZERO
    for payment in pending:
        if covered >= amount:
            break
        chosen.append(payment)
        covered += payment.remaining
    return chosen


def _allocate(txn, payments, amount):
    payments = sorted(
        _with_allocated(Payment.objects.filter(pk__in=[p.pk for p in payments])),
        key=lambda p: (p.due_date, p.pk),
    )
    pending_total = sum((p.remaining for p in payments), ZERO)
    if not payments or amount > pending_total:
        raise BusinessRuleError(
            f"El monto {amount:,.2f} excede el saldo pendiente de las cuotas "
            f"seleccionadas ({pending_total:,.2f})",
            code="amount_exceeds_pending",
        )

    remaining = amount
    allocations = []
    for payment in payments:
        if remaining <= 0:
            break
        apply = min(remaining, payment.remaining)
        if apply <= 0:
            continue
        allocations.append(PaymentAllocation(transaction=txn, payment=payment, amount=apply))
        remaining -= apply
    PaymentAllocation.objects.bulk_create(allocations)
    return allocations


def _resolve_reservation(reservation, payments):
    reservations = {p.reservation_id for p in payments}
    if reservation is None:
        if len(reservations) > 1:
            raise BusinessRuleError(
                "Las cuotas pertenecen a reservas distintas", code="mixed_reservations"
            )
        return payments[0].reservation if payments else None
    if reservations - {reservation.pk}:
        raise BusinessRuleError(
            "Una o más cuotas no pertenecen a la reserva", code="payment_not_in_reservation"
        )
    return reservation


@transaction.atomic
def create_transaction(
    *,
    amount_paid,
    payment_method=PaymentMethod.CASH,
    payment_date=None,
    reservation=None,
    payment_ids=None,
    reference_number="",
    receipt_url="",
    start_from_last=True,
    acting_user=None,
):
    amount = _check_payment_values(amount_paid, payment_method)
    if payment_ids:
        payments = _locked_payments(payment_ids)
        reservation = _resolve_reservation(reservation, payments)
    else:
        if reservation is None:
            raise BusinessRuleError(
                "Indique la reserva o las cuotas a pagar", code="missing_payments"
            )
        payments = _auto_select(reservation, amount, start_from_last)

    txn = PaymentTransaction(
        amount_paid=amount,
        reservation=reservation,
        payment_method=payment_method or PaymentMethod.CASH,
        reference_number=reference_number or "",
        receipt_url=receipt_url or "",
    )
    if payment_date:
        txn.payment_date = payment_date
    txn.save()
    allocations = _allocate(txn, payments, amount)
    recompute_paid_flags(payments)

    AuditLog.record(txn, AuditLog.Action.CREATE, acting_user)
    logger.info(
        "Pago %s por %s asignado a %s cuotas de la reserva %s",
        txn.pk,
        amount,
        len(allocations),
        reservation.pk if reservation else None,
    )
    return txn


@transaction.atomic
def update_transaction(txn, changes, acting_user=None):
    """Actualiza datos del pago y reemplaza por completo su reparto en cuotas."""
    txn = PaymentTransaction.objects.select_for_update().get(pk=txn.pk)
    amount = _check_payment_values(
        changes.get("amount_paid", txn.amount_paid),
        changes.get("payment_method", txn.payment_method),
    )
    previous = list(Payment.objects.filter(allocations__transaction=txn).distinct())
    txn.allocations.all().delete()

    payment_ids = changes.get("payment_ids")
    reservation = changes.get("reservation", txn.reservation)
    if payment_ids:
        payments = _locked_payments(payment_ids)
        reservation = _resolve_reservation(reservation, payments)
    elif previous:
        payments = previous
    elif reservation is not None:
        payments = _auto_select(reservation, amount, changes.get("start_from_last", True))
    else:
        payments = []

    txn.amount_paid = amount
    txn.reservation = reservation
    for field in ("payment_date", "payment_method", "reference_number", "receipt_url"):
        if changes.get(field) is not None:
            setattr(txn, field, changes[field])
    txn.save()
    if payments:
        _allocate(txn, payments, amount)

    affected = list(reservation.payments.all()) if reservation else []
    recompute_paid_flags({p.pk: p for p in affected + previous + payments}.values())
    AuditLog.record(txn, AuditLog.Action.UPDATE, acting_user)
    return txn


@transaction.atomic
def delete_transaction(txn, acting_user=None):
    affected = list(Payment.objects.filter(allocations__transaction=txn).distinct())
    AuditLog.record(txn, AuditLog.Action.DELETE, acting_user, f"{txn.amount_paid:,.2f}")
    logger.info("Pago %s eliminado; recalculando %s cuotas", txn.pk, len(affected))
    txn.delete()
    recompute_paid_flags(affected)


def transaction_queryset():
    return PaymentTransaction.objects.select_related(
        "reservation__client", "reservation__quotation"
    ).prefetch_related("allocations")
