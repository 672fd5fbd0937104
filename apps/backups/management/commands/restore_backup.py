"""
Management command to restore a backup document.

Usage:
    python manage.py restore_backup backup.json --dry-run
    python manage.py restore_backup backup.json
"""

import json

from django.core.management.base import BaseCommand, CommandError

from apps.accounts.capabilities import Actor
from apps.backups.exceptions import BackupServiceError
from apps.backups.services import restore_backup


class Command(BaseCommand):
    help = 'Restore the ledger from a JSON backup document'

    def add_arguments(self, parser):
        parser.add_argument('path', help='Backup file to restore')
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate the backup and show counts without writing anything',
        )
        parser.add_argument(
            '--skip-verification',
            action='store_true',
            help='Do not check record counts and checksums first',
        )

    def handle(self, *args, **options):
        try:
            with open(options['path'], encoding='utf-8') as handle:
                document = json.load(handle)
        except (OSError, ValueError) as e:
            raise CommandError(f"Cannot read {options['path']}: {e}")

        try:
            result = restore_backup(
                document,
                actor=Actor.system(),
                dry_run=options['dry_run'],
                skip_verification=options['skip_verification'],
            )
        except BackupServiceError as e:
            for error in e.errors:
                self.stderr.write(f'  - {error}')
            raise CommandError(str(e))

        self.stdout.write(f'\nBackup {result.backup_id} ({result.backup_type})')
        for table, count in result.restored_counts.items():
            self.stdout.write(f'  - {table}: {count}')

        if result.dry_run:
            self.stdout.write(self.style.WARNING('\n--dry-run mode: nothing restored.'))
            return

        self.stdout.write(
            self.style.SUCCESS(
                f'\nRestore complete; {result.tokens_recalculated} contribution(s) recalculated.'
            )
        )
