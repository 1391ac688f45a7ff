from django.core.management.base import BaseCommand

from users.models import RoleCode, UserRole


class Command(BaseCommand):
    help = "Crea los roles adicionales asignables (uno por código de rol)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Quita los roles adicionales asignados a usuarios antes de cargar.",
        )

    def handle(self, *args, **options):
        if options["reset"]:
            UserRole.users.through.objects.all().delete()
            self.stdout.write(self.style.WARNING("Asignaciones de roles adicionales eliminadas."))

        created = 0
        for code in RoleCode.values:
            _, was_created = UserRole.objects.get_or_create(code=code)
            created += int(was_created)

        self.stdout.write(self.style.SUCCESS(f"Roles listos: {len(RoleCode.values)} ({created} nuevos)."))
