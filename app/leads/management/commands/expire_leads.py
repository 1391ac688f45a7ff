"""
Marca como expirados los leads vencidos que siguen abiertos.

Uso (cron):
    python manage.py expire_leads
"""

from django.core.management.base import BaseCommand

from leads.services import expire_overdue_leads


class Command(BaseCommand):
    help = "Marca como expirados los leads con fecha de vencimiento pasada."

    def handle(self, *args, **options):
        count = expire_overdue_leads()
        if count == 0:
            self.stdout.write(self.style.WARNING("No hay leads vencidos."))
            return
        self.stdout.write(self.style.SUCCESS(f"{count} leads marcados como expirados."))
