from decimal import Decimal

from django.db import models
from django.db.models import Sum
from django.utils import timezone

from core.models import TimeStampedModel
from sales.models import PaymentMethod


class Payment(TimeStampedModel):
    """Cuota del cronograma de una reserva. ``paid`` se deriva de las asignaciones."""

    reservation = models.ForeignKey(
        "sales.Reservation", on_delete=models.CASCADE, related_name="payments"
    )
    due_date = models.DateField("Vencimiento")
    amount_due = models.DecimalField("Monto de la cuota", max_digits=14, decimal_places=2)
    paid = models.BooleanField("Pagada", default=False)

    class Meta:
        ordering = ["due_date", "pk"]
        indexes = [
            models.Index(fields=["reservation", "due_date"], name="finance_payment_due_idx"),
        ]

    def __str__(self):
        return f"Cuota {self.due_date:%Y-%m-%d} - {self.amount_due:,.2f}"

    @property
    def amount_paid(self):
        annotated = getattr(self, "allocated", None)
        if annotated is not None:
            return annotated
        return self.allocations.aggregate(t=Sum("amount"))["t"] or Decimal("0")

    @property
    def remaining(self):
        return max(self.amount_due - self.amount_paid, Decimal("0"))


class PaymentTransaction(TimeStampedModel):
    """Pago real recibido; puede cubrir varias cuotas."""

    payment_date = models.DateField("Fecha de pago", default=timezone.localdate)
    amount_paid = models.DecimalField("Monto pagado", max_digits=14, decimal_places=2)
    reservation = models.ForeignKey(
        "sales.Reservation",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
    )
    payment_method = models.CharField(
        max_length=15, choices=PaymentMethod.choices, default=PaymentMethod.CASH
    )
    reference_number = models.CharField("N° de operación", max_length=100, blank=True)
    receipt_url = models.URLField("Comprobante", max_length=500, blank=True)

    class Meta:
        ordering = ["-payment_date", "-pk"]

    def __str__(self):
        return f"Pago #{self.pk} - {self.amount_paid:,.2f}"


class PaymentAllocation(models.Model):
    transaction = models.ForeignKey(
        PaymentTransaction, on_delete=models.CASCADE, related_name="allocations"
    )
    payment = models.ForeignKey(Payment, on_delete=models.PROTECT, related_name="allocations")
    amount = models.DecimalField("Monto aplicado", max_digits=14, decimal_places=2)

    class Meta:
        ordering = ["payment__due_date", "pk"]

    def __str__(self):
        return f"{self.amount:,.2f} -> cuota {self.payment_id}"
