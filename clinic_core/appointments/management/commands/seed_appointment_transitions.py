# clinic_core/appointments/management/commands/seed_appointment_transitions.py

from django.core.management.base import BaseCommand

from clinic_core.appointments.transitions import seed_default_transitions


class Command(BaseCommand):
    help = "Load the default appointment status transitions (idempotent)."

    def handle(self, *args, **options):
        created = seed_default_transitions()
        self.stdout.write(self.style.SUCCESS(f"Transitions ensured. Newly created: {created}"))
