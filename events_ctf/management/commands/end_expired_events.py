"""
Management command to manually deactivate expired events.
Usage: python manage.py end_expired_events
"""
from django.core.management.base import BaseCommand
from django.utils import timezone
from events_ctf.models import Event


class Command(BaseCommand):
    help = 'Deactivate events that have passed their end_time'

    def handle(self, *args, **options):
        now = timezone.now()
        self.stdout.write(f"Current time: {now}")

        expired = Event.objects.filter(is_active=True, end_time__lt=now)

        if not expired.exists():
            self.stdout.write(self.style.SUCCESS('No events need to be ended'))
            return

        ended_count = 0
        for event in expired:
            self.stdout.write(f"\nProcessing: {event.name} (id={event.id})")
            self.stdout.write(f"  End time: {event.end_time}")

            if event.deactivate_if_expired(now):
                ended_count += 1
                self.stdout.write(self.style.SUCCESS("  DEACTIVATED"))
            else:
                self.stdout.write(self.style.WARNING("  Already inactive"))

        self.stdout.write(self.style.SUCCESS(f"\nTotal ended: {ended_count} event(s)"))
