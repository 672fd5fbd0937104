"""
Management command to rebuild every contribution's tokens consumed.

Safe to run repeatedly: a second run reports no changes.

Usage:
    python manage.py recalculate_tokens
    python manage.py recalculate_tokens --dry-run
"""

from django.core.management.base import BaseCommand

from apps.accounts.capabilities import Actor
from apps.purchases.services import run_recalculation


class Command(BaseCommand):
    help = 'Recalculate tokens consumed for all contributions from the meter sequence'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be updated without making changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']

        report = run_recalculation(actor=Actor.system(), dry_run=dry_run)

        self.stdout.write(f'\nChecked {report.checked} contribution(s).')

        if not report.changes:
            self.stdout.write(
                self.style.SUCCESS('All contributions already have correct tokens consumed.')
            )
            return

        for change in report.changes:
            self.stdout.write(
                f'  - Contribution {change.contribution_id} | Purchase {change.purchase_id} | '
                f'{change.old_tokens_consumed} -> {change.new_tokens_consumed} kWh'
            )

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f'\n--dry-run mode: {report.updated} change(s) not saved.')
            )
            return

        self.stdout.write(
            self.style.SUCCESS(f'\nUpdated {report.updated} contribution(s).')
        )
