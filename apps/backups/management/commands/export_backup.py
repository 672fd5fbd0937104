"""
Management command to write a backup document to disk.

Usage:
    python manage.py export_backup --output backup.json
    python manage.py export_backup --since 2024-06-01T00:00:00Z
"""

import json

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from apps.accounts.capabilities import Actor
from apps.backups.services import create_backup


class Command(BaseCommand):
    help = 'Export the ledger as a JSON backup document'

    def add_arguments(self, parser):
        parser.add_argument(
            '--output',
            help='File to write; defaults to <backup id>.json in the current directory',
        )
        parser.add_argument(
            '--since',
            help='ISO 8601 datetime: export only records changed since then',
        )

    def handle(self, *args, **options):
        since = None
        if options['since']:
            since = parse_datetime(options['since'])
            if since is None:
                raise CommandError(f"Invalid --since value: {options['since']}")

        document = create_backup(actor=Actor.system(), since=since)
        metadata = document['metadata']
        path = options['output'] or f"{metadata['id']}.json"

        with open(path, 'w', encoding='utf-8') as handle:
            json.dump(document, handle, indent=2)

        self.stdout.write(f"\n{metadata['type'].capitalize()} backup {metadata['id']}")
        for table, count in metadata['recordCounts'].items():
            self.stdout.write(f'  - {table}: {count}')
        self.stdout.write(self.style.SUCCESS(f'\nWrote {path}'))
