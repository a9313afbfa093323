"""
Management command for the retroactive badge check.

Usage: python manage.py reconcile_badges
"""

from django.core.management.base import BaseCommand

from feed.badges import reconcile_all_users


class Command(BaseCommand):
    help = 'Re-derive official badges for every user and grant the missing ones'

    def handle(self, *args, **options):
        result = reconcile_all_users()
        self.stdout.write(self.style.SUCCESS(
            f'Checked {result.users_examined} users, '
            f'granted {result.badges_granted} badges'
        ))
