import django.db.models.deletion
import django.utils.timezone
import leads.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Client",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("name", models.CharField(blank=True, max_length=150, verbose_name="Nombre")),
                ("dni", models.CharField(blank=True, max_length=8, verbose_name="DNI")),
                ("ruc", models.CharField(blank=True, max_length=11, verbose_name="RUC")),
                ("company_name", models.CharField(blank=True, max_length=200, verbose_name="Razón social")),
                ("phone_number", models.CharField(max_length=20, verbose_name="Celular")),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("address", models.CharField(blank=True, max_length=255, verbose_name="Dirección")),
                ("country", models.CharField(blank=True, max_length=60, verbose_name="País")),
                ("type", models.CharField(blank=True, choices=[("Natural", "Persona Natural"), ("Juridico", "Persona Jurídica")], max_length=10, verbose_name="Tipo")),
                ("co_owners", models.JSONField(blank=True, default=list, verbose_name="Copropietarios")),
                ("separate_property", models.BooleanField(default=False, verbose_name="Separación de bienes")),
                ("separate_property_data", models.JSONField(blank=True, null=True, verbose_name="Datos separación de bienes")),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["phone_number"], name="leads_client_phone_idx"),
                    models.Index(fields=["dni"], name="leads_client_dni_idx"),
                    models.Index(fields=["ruc"], name="leads_client_ruc_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Lead",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("code", models.CharField(max_length=20, unique=True, verbose_name="Código")),
                ("status", models.CharField(choices=[("Registered", "Registrado"), ("Attended", "Atendido"), ("InFollowUp", "En seguimiento"), ("Completed", "Completado"), ("Canceled", "Cancelado"), ("Expired", "Expirado")], default="Registered", max_length=12)),
                ("capture_source", models.CharField(choices=[("Company", "Empresa"), ("PersonalFacebook", "Facebook personal"), ("RealEstateFair", "Feria inmobiliaria"), ("Institutional", "Institucional"), ("Loyalty", "Fidelizado")], max_length=20, verbose_name="Medio de captación")),
                ("procedency", models.CharField(blank=True, max_length=100, verbose_name="Procedencia")),
                ("entry_date", models.DateTimeField(default=django.utils.timezone.now, verbose_name="Fecha de ingreso")),
                ("expiration_date", models.DateTimeField(default=leads.models._default_expiration, verbose_name="Fecha de vencimiento")),
                ("recycle_count", models.PositiveIntegerField(default=0, verbose_name="Reciclajes")),
                ("last_recycled_at", models.DateTimeField(blank=True, null=True)),
                ("completion_reason", models.CharField(blank=True, choices=[("NotInterested", "No interesado"), ("InFollowUp", "En seguimiento"), ("Sale", "Venta")], max_length=15)),
                ("cancellation_reason", models.CharField(blank=True, max_length=255, verbose_name="Motivo de cancelación")),
                ("assigned_to", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assigned_leads", to=settings.AUTH_USER_MODEL)),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="leads", to="leads.client")),
                ("last_recycled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="recycled_leads", to=settings.AUTH_USER_MODEL)),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="leads", to="inventory.project")),
            ],
            options={
                "ordering": ["-entry_date"],
            },
        ),
    ]
