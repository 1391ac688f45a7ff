import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("inventory", "0001_initial"),
        ("leads", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.RemoveField(
            model_name="lead",
            name="procedency",
        ),
        migrations.CreateModel(
            name="LeadTask",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("description", models.TextField(verbose_name="Descripción")),
                ("scheduled_date", models.DateTimeField(verbose_name="Fecha programada")),
                ("completed_date", models.DateTimeField(blank=True, null=True, verbose_name="Fecha de cumplimiento")),
                ("is_completed", models.BooleanField(default=False, verbose_name="Completada")),
                ("type", models.CharField(choices=[("Call", "Llamada"), ("Meeting", "Reunión"), ("Email", "Correo electrónico"), ("Visit", "Visita"), ("Other", "Otro")], default="Other", max_length=10, verbose_name="Tipo")),
                ("assigned_to", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="lead_tasks", to=settings.AUTH_USER_MODEL)),
                ("lead", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="tasks", to="leads.lead")),
            ],
            options={
                "ordering": ["scheduled_date"],
                "indexes": [models.Index(fields=["assigned_to", "scheduled_date"], name="leads_task_user_date_idx")],
            },
        ),
        migrations.CreateModel(
            name="Referral",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True, verbose_name="Activo")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Creado")),
                ("modified_at", models.DateTimeField(auto_now=True, verbose_name="Modificado")),
                ("project", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="referrals", to="inventory.project")),
                ("referred_lead", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="referrals", to="leads.lead", verbose_name="Lead referido")),
                ("referrer_client", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="referrals_made", to="leads.client", verbose_name="Cliente referidor")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
