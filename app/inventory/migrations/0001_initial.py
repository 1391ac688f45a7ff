import django.db.models.deletion
import django.db.models.functions.text
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Project",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("name", models.CharField(max_length=100, verbose_name="Nombre Proyecto")),
                ("location", models.CharField(max_length=200, verbose_name="Ubicación")),
                ("currency", models.CharField(default="PEN", max_length=3, verbose_name="Moneda")),
                ("default_down_payment", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name="Cuota inicial por defecto (%)")),
                ("default_financing_months", models.PositiveIntegerField(blank=True, null=True, verbose_name="Meses de financiación por defecto")),
                ("max_discount_percentage", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, verbose_name="Máx. descuento (%)")),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [
                    models.UniqueConstraint(django.db.models.functions.text.Lower("name"), name="unique_project_name_ci"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Block",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("name", models.CharField(max_length=50, verbose_name="Nombre")),
                ("project", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="blocks", to="inventory.project")),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(django.db.models.functions.text.Lower("name"), models.F("project"), name="unique_block_name_per_project_ci"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Lot",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("lot_number", models.CharField(max_length=20, verbose_name="Número de lote")),
                ("area", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="Área (m²)")),
                ("price", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="Precio")),
                ("status", models.CharField(choices=[("Available", "Disponible"), ("Quoted", "Cotizado"), ("Reserved", "Reservado"), ("Sold", "Vendido")], default="Available", max_length=10)),
                ("block", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="lots", to="inventory.block")),
            ],
            options={
                "ordering": ["lot_number"],
                "constraints": [
                    models.UniqueConstraint(django.db.models.functions.text.Lower("lot_number"), models.F("block"), name="unique_lot_number_per_block_ci"),
                ],
            },
        ),
    ]
