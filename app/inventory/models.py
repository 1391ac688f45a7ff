from decimal import Decimal

from django.db import models
from django.db.models import Count, Q
from django.db.models.functions import Lower

from core.models import TimeStampedModel


class LotStatus(models.TextChoices):
    AVAILABLE = "Available", "Disponible"
    QUOTED = "Quoted", "Cotizado"
    RESERVED = "Reserved", "Reservado"
    SOLD = "Sold", "Vendido"


# Lotes con venta en curso: bloquean eliminar su bloque o proyecto.
LOCKED_LOT_STATUSES = (LotStatus.RESERVED, LotStatus.SOLD)

LOT_TRANSITIONS = {
    LotStatus.AVAILABLE: {LotStatus.QUOTED, LotStatus.RESERVED, LotStatus.SOLD},
    LotStatus.QUOTED: {LotStatus.AVAILABLE, LotStatus.RESERVED},
    LotStatus.RESERVED: {LotStatus.AVAILABLE, LotStatus.SOLD},
    LotStatus.SOLD: set(),
}


def _lot_count_annotations(relation):
    counts = {"total_lots": Count(relation, distinct=True)}
    for status in LotStatus:
        counts[f"{status.value.lower()}_lots"] = Count(
            relation,
            filter=Q(**{f"{relation}__status": status}),
            distinct=True,
        )
    return counts


class ProjectQuerySet(models.QuerySet):
    def with_lot_counts(self):
        return self.annotate(
            total_blocks=Count("blocks", distinct=True),
            **_lot_count_annotations("blocks__lots"),
        )


class BlockQuerySet(models.QuerySet):
    def with_lot_counts(self):
        return self.annotate(**_lot_count_annotations("lots"))


class Project(TimeStampedModel):
    """
    Proyecto inmobiliario (urbanización). Agrupa manzanas/bloques y define
    los parámetros comerciales por defecto de las cotizaciones.
    """
    name = models.CharField("Nombre Proyecto", max_length=100)
    location = models.CharField("Ubicación", max_length=200)
    currency = models.CharField("Moneda", max_length=3, default="PEN")

    default_down_payment = models.DecimalField(
        "Cuota inicial por defecto (%)",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )
    default_financing_months = models.PositiveIntegerField(
        "Meses de financiación por defecto",
        null=True,
        blank=True,
    )
    max_discount_percentage = models.DecimalField(
        "Máx. descuento (%)",
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )

    objects = ProjectQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(Lower("name"), name="unique_project_name_ci"),
        ]

    def __str__(self):
        return self.name

    def lots(self):
        return Lot.objects.filter(block__project=self)

    def has_locked_lots(self):
        return self.lots().filter(status__in=LOCKED_LOT_STATUSES).exists()


class Block(TimeStampedModel):
    name = models.CharField("Nombre", max_length=50)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name="blocks")

    objects = BlockQuerySet.as_manager()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(Lower("name"), "project", name="unique_block_name_per_project_ci"),
        ]

    def __str__(self):
        return f"{self.project.name} - {self.name}"

    def has_locked_lots(self):
        return self.lots.filter(status__in=LOCKED_LOT_STATUSES).exists()


class Lot(TimeStampedModel):
    lot_number = models.CharField("Número de lote", max_length=20)
    area = models.DecimalField("Área (m²)", max_digits=10, decimal_places=2)
    price = models.DecimalField("Precio", max_digits=14, decimal_places=2)
    status = models.CharField(max_length=10, choices=LotStatus.choices, default=LotStatus.AVAILABLE)
    block = models.ForeignKey(Block, on_delete=models.CASCADE, related_name="lots")

    class Meta:
        ordering = ["lot_number"]
        constraints = [
            models.UniqueConstraint(Lower("lot_number"), "block", name="unique_lot_number_per_block_ci"),
        ]

    def __str__(self):
        return f"Lote {self.lot_number} ({self.get_status_display()})"

    @property
    def project(self):
        return self.block.project

    @property
    def price_per_square_meter(self):
        if not self.area:
            return Decimal("0")
        return (self.price / self.area).quantize(Decimal("0.01"))

    @property
    def is_locked(self):
        return self.status in LOCKED_LOT_STATUSES

    @property
    def is_fully_active(self):
        return self.is_active and self.block.is_active and self.block.project.is_active

    def can_transition_to(self, new_status):
        return new_status == self.status or new_status in LOT_TRANSITIONS[LotStatus(self.status)]
