import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("inventory", "0001_initial"),
        ("leads", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Quotation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("code", models.CharField(max_length=20, unique=True, verbose_name="Código")),
                ("status", models.CharField(choices=[("ISSUED", "Emitida"), ("ACCEPTED", "Aceptada"), ("CANCELED", "Cancelada")], default="ISSUED", max_length=10)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Precio al cotizar")),
                ("discount", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="Descuento")),
                ("final_price", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Precio final")),
                ("down_payment", models.DecimalField(decimal_places=2, default=0, max_digits=5, verbose_name="Cuota inicial (%)")),
                ("amount_financed", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Monto financiado")),
                ("months_financed", models.PositiveIntegerField(default=0, verbose_name="Meses financiados")),
                ("area_at_quotation", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Área al cotizar")),
                ("price_per_m2_at_quotation", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Precio m² al cotizar")),
                ("project_name", models.CharField(max_length=100, verbose_name="Proyecto")),
                ("block_name", models.CharField(max_length=50, verbose_name="Bloque")),
                ("lot_number", models.CharField(max_length=20, verbose_name="Lote")),
                ("currency", models.CharField(max_length=3, verbose_name="Moneda")),
                ("exchange_rate", models.DecimalField(decimal_places=4, default=1, max_digits=10, verbose_name="Tipo de cambio")),
                ("quotation_date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Fecha de cotización")),
                ("valid_until", models.DateField(verbose_name="Válida hasta")),
                ("advisor", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="quotations", to=settings.AUTH_USER_MODEL)),
                ("lead", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="quotations", to="leads.lead")),
                ("lot", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="quotations", to="inventory.lot")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="Reservation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("reservation_date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Fecha de reserva")),
                ("amount_paid", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="Monto pagado")),
                ("total_amount_required", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="Monto requerido")),
                ("remaining_amount", models.DecimalField(decimal_places=2, default=0, max_digits=14, verbose_name="Saldo")),
                ("currency", models.CharField(choices=[("SOLES", "Soles"), ("DOLARES", "Dólares")], default="SOLES", max_length=10)),
                ("status", models.CharField(choices=[("ISSUED", "Emitida"), ("CANCELED", "Pagada"), ("ANULATED", "Anulada")], default="ISSUED", max_length=10)),
                ("payment_method", models.CharField(choices=[("CASH", "Efectivo"), ("BANK_DEPOSIT", "Depósito bancario"), ("BANK_TRANSFER", "Transferencia bancaria")], default="CASH", max_length=15)),
                ("bank_name", models.CharField(blank=True, max_length=100, verbose_name="Banco")),
                ("exchange_rate", models.DecimalField(decimal_places=4, default=1, max_digits=10, verbose_name="Tipo de cambio")),
                ("expires_at", models.DateTimeField(verbose_name="Vence")),
                ("notified", models.BooleanField(default=False, verbose_name="Notificada")),
                ("schedule", models.TextField(blank=True, verbose_name="Cronograma (texto)")),
                ("payment_history", models.JSONField(blank=True, default=list, verbose_name="Historial de pagos")),
                ("co_owners", models.JSONField(blank=True, default=list, verbose_name="Copropietarios")),
                ("client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reservations", to="leads.client")),
                ("quotation", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="reservations", to="sales.quotation")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
