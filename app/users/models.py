from django.db import models
from django.contrib.auth.models import AbstractUser


class RoleCode(models.TextChoices):
    SUPERADMIN = 'SUPERADMIN', 'Super Administrador'
    ADMIN = 'ADMIN', 'Administrador'
    SUPERVISOR = 'SUPERVISOR', 'Supervisor'
    SALES_ADVISOR = 'SALES_ADVISOR', 'Asesor de Ventas'
    MANAGER = 'MANAGER', 'Gerente'


class User(AbstractUser):
    """
    Usuario del CRM (staff comercial y administrativo).
    El rol principal vive en ``role``; ``roles`` permite asignar roles adicionales.
    """
    Role = RoleCode

    role = models.CharField(max_length=20, choices=RoleCode.choices, default=RoleCode.SALES_ADVISOR)
    roles = models.ManyToManyField("users.UserRole", blank=True, related_name="users")
    phone = models.CharField("Celular de Contacto", max_length=20, blank=True)
    supervisor = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="advisors",
        limit_choices_to={"role": RoleCode.SUPERVISOR},
    )

    def __str__(self):
        return f"{self.get_full_name() or self.username} ({self.role})"

    @property
    def is_sales_advisor(self):
        return self.role == self.Role.SALES_ADVISOR

    def has_role(self, code: str) -> bool:
        if self.role == code:
            return True
        return self.roles.filter(code=code).exists()


class UserRole(models.Model):
    code = models.CharField("Código", max_length=20, choices=RoleCode.choices, unique=True)

    def __str__(self):
        return self.get_code_display()
