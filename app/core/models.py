from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Base abstracta con bandera de activación y marcas de tiempo."""

    is_active = models.BooleanField("Activo", default=True)
    created_at = models.DateTimeField("Creado", auto_now_add=True)
    modified_at = models.DateTimeField("Modificado", auto_now=True)

    class Meta:
        abstract = True


class AuditLog(models.Model):
    class Action(models.TextChoices):
        CREATE = "CREATE", "Creación"
        UPDATE = "UPDATE", "Actualización"
        DELETE = "DELETE", "Eliminación"

    entity_type = models.CharField("Entidad", max_length=60)
    entity_id = models.CharField("ID entidad", max_length=64)
    action = models.CharField(max_length=10, choices=Action.choices)
    message = models.CharField(max_length=255, blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["entity_type", "entity_id"], name="core_audit_entity_idx")]

    def __str__(self):
        return f"{self.get_action_display()} {self.entity_type} {self.entity_id}"

    @classmethod
    def record(cls, instance, action, acting_user=None, message=""):
        if acting_user is not None and not getattr(acting_user, "is_authenticated", False):
            acting_user = None
        return cls.objects.create(
            entity_type=instance._meta.model_name,
            entity_id=str(instance.pk),
            action=action,
            message=message[:255],
            user=acting_user,
        )
