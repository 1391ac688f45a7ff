from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class Client(TimeStampedModel):
    """
    Cliente (persona natural con DNI o persona jurídica con RUC).
    El celular es la llave de deduplicación entre clientes activos.
    """

    class Type(models.TextChoices):
        NATURAL = "Natural", "Persona Natural"
        JURIDICO = "Juridico", "Persona Jurídica"

    name = models.CharField("Nombre", max_length=150, blank=True)
    dni = models.CharField("DNI", max_length=8, blank=True)
    ruc = models.CharField("RUC", max_length=11, blank=True)
    company_name = models.CharField("Razón social", max_length=200, blank=True)
    phone_number = models.CharField("Celular", max_length=20)
    email = models.EmailField(blank=True)
    address = models.CharField("Dirección", max_length=255, blank=True)
    country = models.CharField("País", max_length=60, blank=True)
    type = models.CharField("Tipo", max_length=10, choices=Type.choices, blank=True)
    co_owners = models.JSONField("Copropietarios", default=list, blank=True)
    separate_property = models.BooleanField("Separación de bienes", default=False)
    separate_property_data = models.JSONField("Datos separación de bienes", null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["phone_number"], name="leads_client_phone_idx"),
            models.Index(fields=["dni"], name="leads_client_dni_idx"),
            models.Index(fields=["ruc"], name="leads_client_ruc_idx"),
        ]

    def __str__(self):
        return self.display_name or self.phone_number

    @property
    def display_name(self):
        if self.type == self.Type.JURIDICO:
            return self.company_name or self.name
        return self.name


def _default_expiration():
    return timezone.now() + timedelta(days=settings.LEAD_EXPIRATION_DAYS)


class Lead(TimeStampedModel):
    class Status(models.TextChoices):
        REGISTERED = "Registered", "Registrado"
        ATTENDED = "Attended", "Atendido"
        IN_FOLLOW_UP = "InFollowUp", "En seguimiento"
        COMPLETED = "Completed", "Completado"
        CANCELED = "Canceled", "Cancelado"
        EXPIRED = "Expired", "Expirado"

    class CaptureSource(models.TextChoices):
        COMPANY = "Company", "Empresa"
        PERSONAL_FACEBOOK = "PersonalFacebook", "Facebook personal"
        REAL_ESTATE_FAIR = "RealEstateFair", "Feria inmobiliaria"
        INSTITUTIONAL = "Institutional", "Institucional"
        LOYALTY = "Loyalty", "Fidelizado"

    class CompletionReason(models.TextChoices):
        NOT_INTERESTED = "NotInterested", "No interesado"
        IN_FOLLOW_UP = "InFollowUp", "En seguimiento"
        SALE = "Sale", "Venta"

    # Estados en los que el lead ya no vence.
    CLOSED_STATUSES = (Status.COMPLETED, Status.CANCELED, Status.EXPIRED)
    RECYCLABLE_STATUSES = (Status.EXPIRED, Status.CANCELED)

    code = models.CharField("Código", max_length=20, unique=True)
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name="leads")
    project = models.ForeignKey(
        "inventory.Project",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="leads",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_leads",
    )
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.REGISTERED)
    capture_source = models.CharField("Medio de captación", max_length=20, choices=CaptureSource.choices)
    entry_date = models.DateTimeField("Fecha de ingreso", default=timezone.now)
    expiration_date = models.DateTimeField("Fecha de vencimiento", default=_default_expiration)

    recycle_count = models.PositiveIntegerField("Reciclajes", default=0)
    last_recycled_at = models.DateTimeField(null=True, blank=True)
    last_recycled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="recycled_leads",
    )
    completion_reason = models.CharField(max_length=15, choices=CompletionReason.choices, blank=True)
    cancellation_reason = models.CharField("Motivo de cancelación", max_length=255, blank=True)

    class Meta:
        ordering = ["-entry_date"]

    def __str__(self):
        return f"{self.code} - {self.client}"

    @property
    def is_expired(self):
        return self.expiration_date < timezone.now()

    def recycle(self, user=None):
        now = timezone.now()
        self.status = self.Status.IN_FOLLOW_UP
        self.expiration_date = now + timedelta(days=settings.LEAD_EXPIRATION_DAYS)
        self.recycle_count += 1
        self.last_recycled_at = now
        self.last_recycled_by = user if user is not None and user.is_authenticated else None


class LeadTask(TimeStampedModel):
    """Actividad de seguimiento agendada sobre un lead."""

    class Type(models.TextChoices):
        CALL = "Call", "Llamada"
        MEETING = "Meeting", "Reunión"
        EMAIL = "Email", "Correo electrónico"
        VISIT = "Visit", "Visita"
        OTHER = "Other", "Otro"

    lead = models.ForeignKey(Lead, on_delete=models.CASCADE, related_name="tasks")
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="lead_tasks",
    )
    description = models.TextField("Descripción")
    scheduled_date = models.DateTimeField("Fecha programada")
    completed_date = models.DateTimeField("Fecha de cumplimiento", null=True, blank=True)
    is_completed = models.BooleanField("Completada", default=False)
    type = models.CharField("Tipo", max_length=10, choices=Type.choices, default=Type.OTHER)

    class Meta:
        ordering = ["scheduled_date"]
        indexes = [
            models.Index(fields=["assigned_to", "scheduled_date"], name="leads_task_user_date_idx"),
        ]

    def __str__(self):
        return f"{self.get_type_display()} - {self.lead.code}"

    def mark_completed(self, completed, when=None):
        self.is_completed = completed
        self.completed_date = (when or timezone.now()) if completed else None


class Referral(TimeStampedModel):
    """Cliente que recomienda a otra persona; el referido entra como lead fidelizado."""

    referrer_client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        related_name="referrals_made",
        verbose_name="Cliente referidor",
    )
    referred_lead = models.ForeignKey(
        Lead,
        on_delete=models.CASCADE,
        related_name="referrals",
        verbose_name="Lead referido",
    )
    project = models.ForeignKey(
        "inventory.Project",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="referrals",
    )

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.referrer_client} -> {self.referred_lead.code}"
