import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("due_date", models.DateField(verbose_name="Vencimiento")),
                ("amount_due", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Monto de la cuota")),
                ("paid", models.BooleanField(default=False, verbose_name="Pagada")),
                ("reservation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to="sales.reservation")),
            ],
            options={
                "ordering": ["due_date", "pk"],
                "indexes": [models.Index(fields=["reservation", "due_date"], name="finance_payment_due_idx")],
            },
        ),
        migrations.CreateModel(
            name="PaymentTransaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("payment_date", models.DateField(default=django.utils.timezone.localdate, verbose_name="Fecha de pago")),
                ("amount_paid", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Monto pagado")),
                ("payment_method", models.CharField(choices=[("CASH", "Efectivo"), ("BANK_DEPOSIT", "Depósito bancario"), ("BANK_TRANSFER", "Transferencia bancaria")], default="CASH", max_length=15)),
                ("reference_number", models.CharField(blank=True, max_length=100, verbose_name="N° de operación")),
                ("receipt_url", models.URLField(blank=True, max_length=500, verbose_name="Comprobante")),
                ("reservation", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="transactions", to="sales.reservation")),
            ],
            options={
                "ordering": ["-payment_date", "-pk"],
            },
        ),
        migrations.CreateModel(
            name="PaymentAllocation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Monto aplicado")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="allocations", to="finance.payment")),
                ("transaction", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="finance.paymenttransaction")),
            ],
            options={
                "ordering": ["payment__due_date", "pk"],
            },
        ),
    ]
