"""
Backup document layout, encoding and verification.

A backup is one JSON object::

    {
        "metadata": {"id", "timestamp", "type", "version", "since",
                     "recordCounts": {...}, "checksums": {...}},
        "users": [...],
        "tokenPurchases": [...],
        "receiptData": [...],
        "userContributions": [...],
        "meterReadings": [...],
        "accounts": [], "sessions": [], "verificationTokens": []
    }

Records are flat camelCase snapshots; foreign keys are plain id strings.
Password hashes are never written.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple, Type

from django.core.serializers.json import DjangoJSONEncoder
from rest_framework import serializers

from apps.backups.exceptions import BackupFormatError
from apps.backups.serializers import (
    AccountRecordSerializer,
    MeterReadingRecordSerializer,
    ReceiptDataRecordSerializer,
    SessionRecordSerializer,
    TokenPurchaseRecordSerializer,
    UserContributionRecordSerializer,
    UserRecordSerializer,
    VerificationTokenRecordSerializer,
)

logger = logging.getLogger(__name__)

BACKUP_VERSION = '1.0'
BACKUP_TYPES = ('full', 'incremental')


@dataclass(frozen=True)
class Table:
    key: str
    serializer_class: Type[serializers.Serializer]

    @property
    def required(self) -> Tuple[str, ...]:
        fields = self.serializer_class().fields
        return tuple(name for name, field in fields.items() if field.required)


USERS = Table('users', UserRecordSerializer)
TOKEN_PURCHASES = Table('tokenPurchases', TokenPurchaseRecordSerializer)
RECEIPT_DATA = Table('receiptData', ReceiptDataRecordSerializer)
USER_CONTRIBUTIONS = Table('userContributions', UserContributionRecordSerializer)
METER_READINGS = Table('meterReadings', MeterReadingRecordSerializer)
ACCOUNTS = Table('accounts', AccountRecordSerializer)
SESSIONS = Table('sessions', SessionRecordSerializer)
VERIFICATION_TOKENS = Table('verificationTokens', VerificationTokenRecordSerializer)

TABLES = (
    USERS,
    TOKEN_PURCHASES,
    RECEIPT_DATA,
    USER_CONTRIBUTIONS,
    METER_READINGS,
    ACCOUNTS,
    SESSIONS,
    VERIFICATION_TOKENS,
)


def encode_record(table: Table, instance) -> Dict:
    return dict(table.serializer_class(instance).data)


def decode_records(table: Table, records: List[Dict]) -> List[Dict]:
    """
    Map backup records to model field values.

    Raises:
        BackupFormatError: Listing every record field that fails validation
    """
    values = []
    errors = []
    for index, record in enumerate(records):
        serializer = table.serializer_class(data=record)
        if not serializer.is_valid():
            errors.extend(
                f"{table.key} record {index}: {name}: {' '.join(str(message) for message in messages)}"
                for name, messages in serializer.errors.items()
            )
            continue
        values.append(dict(serializer.validated_data))

    if errors:
        raise BackupFormatError(f"Invalid values in {table.key}.", errors=errors)
    return values


def calculate_checksum(records: List[Dict]) -> str:
    payload = json.dumps(records, sort_keys=True, cls=DjangoJSONEncoder)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def verify_backup(document) -> Dict:
    """
    Check a backup document's record counts, checksums and required fields.

    Never raises for a bad document; every problem is listed in ``errors``.

    Returns:
        dict with ``is_valid``, ``errors`` and ``checksum_matches`` (per table)
    """
    errors = []
    checksum_matches = {}

    if not isinstance(document, dict) or not isinstance(document.get('metadata'), dict):
        return {
            'is_valid': False,
            'errors': ['Invalid backup data structure: missing metadata'],
            'checksum_matches': checksum_matches,
        }

    metadata = document['metadata']
    if metadata.get('type') not in BACKUP_TYPES:
        errors.append(f"Unknown backup type: {metadata.get('type')!r}")

    counts = metadata.get('recordCounts') or {}
    checksums = metadata.get('checksums') or {}

    for table in TABLES:
        records = document.get(table.key)
        if not isinstance(records, list):
            errors.append(f"Missing table '{table.key}'")
            checksum_matches[table.key] = False
            continue

        expected_count = counts.get(table.key)
        if expected_count != len(records):
            errors.append(
                f"Record count mismatch for {table.key}: expected {expected_count}, got {len(records)}"
            )

        checksum_matches[table.key] = checksums.get(table.key) == calculate_checksum(records)
        if not checksum_matches[table.key]:
            errors.append(f"Checksum mismatch for {table.key}: data may be corrupted")

        required = table.required
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                errors.append(f"Record {index} in {table.key} is not an object")
                continue
            for name in required:
                if name not in record:
                    errors.append(f"Missing required field '{name}' in {table.key} record {index}")

    if errors:
        logger.warning("Backup %s failed verification with %d error(s)", metadata.get('id'), len(errors))

    return {
        'is_valid': not errors,
        'errors': errors,
        'checksum_matches': checksum_matches,
    }
