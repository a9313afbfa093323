"""
Management command for the poll closer timer tick.

Usage: python manage.py close_polls

Scheduled every 5 minutes by cron (or the hosting platform's cron job):
    */5 * * * * cd /app/backend && python manage.py close_polls
"""

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from feed.polls import close_due_polls


class Command(BaseCommand):
    help = 'Close polls whose end date has passed and notify their voters'

    def add_arguments(self, parser):
        parser.add_argument(
            '--now',
            help='ISO timestamp to treat as the current time (defaults to the clock)'
        )

    def handle(self, *args, **options):
        now = None
        if options['now']:
            now = parse_datetime(options['now'])
            if now is None:
                raise CommandError(f"Invalid --now timestamp: {options['now']}")
            if timezone.is_naive(now):
                now = timezone.make_aware(now)

        processed = close_due_polls(now)
        self.stdout.write(self.style.SUCCESS(f'Closed {processed} polls'))
