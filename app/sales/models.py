from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel

TWO_PLACES = Decimal("0.01")


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Efectivo"
    BANK_DEPOSIT = "BANK_DEPOSIT", "Depósito bancario"
    BANK_TRANSFER = "BANK_TRANSFER", "Transferencia bancaria"


class Quotation(TimeStampedModel):
    """
    Cotización de un lote. Precio, área y precio por m² se copian del lote al
    emitirla; los cambios posteriores del lote no la afectan.
    """

    class Status(models.TextChoices):
        ISSUED = "ISSUED", "Emitida"
        ACCEPTED = "ACCEPTED", "Aceptada"
        CANCELED = "CANCELED", "Cancelada"

    TRANSITIONS = {
        Status.ISSUED: {Status.ACCEPTED, Status.CANCELED},
        Status.ACCEPTED: {Status.CANCELED},
        Status.CANCELED: set(),
    }

    code = models.CharField("Código", max_length=20, unique=True)
    lead = models.ForeignKey("leads.Lead", on_delete=models.PROTECT, related_name="quotations")
    lot = models.ForeignKey(
        "inventory.Lot",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="quotations",
    )
    advisor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="quotations",
    )
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ISSUED)

    total_price = models.DecimalField("Precio al cotizar", max_digits=14, decimal_places=2)
    discount = models.DecimalField("Descuento", max_digits=14, decimal_places=2, default=0)
    final_price = models.DecimalField("Precio final", max_digits=14, decimal_places=2)
    down_payment = models.DecimalField("Cuota inicial (%)", max_digits=5, decimal_places=2, default=0)
    amount_financed = models.DecimalField("Monto financiado", max_digits=14, decimal_places=2)
    months_financed = models.PositiveIntegerField("Meses financiados", default=0)

    area_at_quotation = models.DecimalField("Área al cotizar", max_digits=10, decimal_places=2)
    price_per_m2_at_quotation = models.DecimalField("Precio m² al cotizar", max_digits=14, decimal_places=2)
    project_name = models.CharField("Proyecto", max_length=100)
    block_name = models.CharField("Bloque", max_length=50)
    lot_number = models.CharField("Lote", max_length=20)

    currency = models.CharField("Moneda", max_length=3)
    exchange_rate = models.DecimalField("Tipo de cambio", max_digits=10, decimal_places=4, default=1)
    quotation_date = models.DateField("Fecha de cotización", default=timezone.localdate)
    valid_until = models.DateField("Válida hasta")

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return self.code

    def recalculate(self):
        self.final_price = self.total_price - self.discount
        down_amount = self.final_price * self.down_payment / Decimal("100")
        self.amount_financed = (self.final_price - down_amount).quantize(TWO_PLACES)

    def reset_validity(self):
        self.valid_until = self.quotation_date + timedelta(days=settings.QUOTATION_VALIDITY_DAYS)

    @property
    def down_payment_amount(self):
        return self.final_price - self.amount_financed

    @property
    def is_expired(self):
        return self.valid_until < timezone.localdate()

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS[self.Status(self.status)]


class Reservation(TimeStampedModel):
    class Status(models.TextChoices):
        ISSUED = "ISSUED", "Emitida"
        # Valor histórico: CANCELED significa reserva pagada/liquidada.
        CANCELED = "CANCELED", "Pagada"
        ANULATED = "ANULATED", "Anulada"

    class Currency(models.TextChoices):
        SOLES = "SOLES", "Soles"
        DOLARES = "DOLARES", "Dólares"

    SETTLED = Status.CANCELED

    TRANSITIONS = {
        Status.ISSUED: {Status.CANCELED, Status.ANULATED},
        Status.CANCELED: set(),
        Status.ANULATED: set(),
    }

    client = models.ForeignKey("leads.Client", on_delete=models.PROTECT, related_name="reservations")
    quotation = models.ForeignKey(Quotation, on_delete=models.PROTECT, related_name="reservations")
    reservation_date = models.DateField("Fecha de reserva", default=timezone.localdate)
    amount_paid = models.DecimalField("Monto pagado", max_digits=14, decimal_places=2, default=0)
    total_amount_required = models.DecimalField("Monto requerido", max_digits=14, decimal_places=2, default=0)
    remaining_amount = models.DecimalField("Saldo", max_digits=14, decimal_places=2, default=0)
    currency = models.CharField(max_length=10, choices=Currency.choices, default=Currency.SOLES)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ISSUED)
    payment_method = models.CharField(max_length=15, choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    bank_name = models.CharField("Banco", max_length=100, blank=True)
    exchange_rate = models.DecimalField("Tipo de cambio", max_digits=10, decimal_places=4, default=1)
    expires_at = models.DateTimeField("Vence")
    notified = models.BooleanField("Notificada", default=False)
    schedule = models.TextField("Cronograma (texto)", blank=True)
    payment_history = models.JSONField("Historial de pagos", default=list, blank=True)
    co_owners = models.JSONField("Copropietarios", default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Reserva {self.quotation.code} - {self.client}"

    @property
    def is_settled(self):
        return self.status == self.SETTLED

    def can_transition_to(self, new_status):
        return new_status in self.TRANSITIONS[self.Status(self.status)]
