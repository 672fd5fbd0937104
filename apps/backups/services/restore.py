"""
Restore a backup document into the ledger.

Restore is an upsert: records are matched by id and overwritten, records
missing from the document are left alone. Users are also matched by email
so a backup taken elsewhere maps onto existing accounts. Everything runs
in one transaction; tokens consumed are rebuilt afterwards.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from django.contrib.auth import get_user_model
from django.db import transaction

from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.meter_readings.models import MeterReading
from apps.purchases.models import ReceiptData, TokenPurchase, UserContribution
from apps.purchases.services import invalidate_sequential_cache, recalculate_all_tokens_consumed
from apps.backups.exceptions import BackupFormatError, BackupVerificationError
from .format import (
    METER_READINGS,
    RECEIPT_DATA,
    TABLES,
    TOKEN_PURCHASES,
    USER_CONTRIBUTIONS,
    USERS,
    decode_records,
    verify_backup,
)

logger = logging.getLogger(__name__)

User = get_user_model()

TIMESTAMP_FIELDS = ('created_at', 'updated_at')

RESTORED_TABLES = (USERS, TOKEN_PURCHASES, RECEIPT_DATA, USER_CONTRIBUTIONS, METER_READINGS)


@dataclass
class RestoreResult:
    backup_id: str
    backup_type: str
    dry_run: bool
    restored_counts: Dict[str, int] = field(default_factory=dict)
    tokens_recalculated: int = 0


def _split_timestamps(values):
    timestamps = {name: values.pop(name) for name in TIMESTAMP_FIELDS if values.get(name)}
    return values, timestamps


def _restore_timestamps(model, pk, timestamps):
    # auto_now / auto_now_add ignore assigned values on save
    if timestamps:
        model.objects.filter(pk=pk).update(**timestamps)


def _check_structure(document):
    if not isinstance(document, dict) or not isinstance(document.get('metadata'), dict):
        raise BackupFormatError('Invalid backup data structure: missing metadata')
    missing = [table.key for table in TABLES if not isinstance(document.get(table.key), list)]
    if missing:
        raise BackupFormatError(f"Invalid backup data structure: missing {', '.join(missing)}")


def _check_references(document):
    """
    Every foreign key must resolve to a record in the document or the database.

    Raises:
        BackupFormatError: Listing every dangling reference
    """
    user_ids = {str(record.get('id')) for record in document[USERS.key]}
    user_ids.update(str(pk) for pk in User.objects.values_list('pk', flat=True))
    purchase_ids = {str(record.get('id')) for record in document[TOKEN_PURCHASES.key]}
    purchase_ids.update(str(pk) for pk in TokenPurchase.objects.values_list('pk', flat=True))

    errors = []
    for record in document[TOKEN_PURCHASES.key]:
        if str(record.get('createdBy')) not in user_ids:
            errors.append(f"Purchase {record.get('id')} references unknown user {record.get('createdBy')}")
    for record in document[RECEIPT_DATA.key]:
        if str(record.get('purchaseId')) not in purchase_ids:
            errors.append(f"Receipt {record.get('id')} references unknown purchase {record.get('purchaseId')}")
    for record in document[USER_CONTRIBUTIONS.key]:
        if str(record.get('purchaseId')) not in purchase_ids:
            errors.append(
                f"Orphaned contribution {record.get('id')}: purchase {record.get('purchaseId')} not found"
            )
        if str(record.get('userId')) not in user_ids:
            errors.append(f"Contribution {record.get('id')} references unknown user {record.get('userId')}")
    for record in document[METER_READINGS.key]:
        if str(record.get('userId')) not in user_ids:
            errors.append(f"Meter reading {record.get('id')} references unknown user {record.get('userId')}")

    if errors:
        raise BackupFormatError('Backup references records that do not exist.', errors=errors)


def _decode_document(document):
    """
    Validate every restored table through its record serializer.

    Raises:
        BackupFormatError: Listing every invalid value in the document
    """
    decoded = {}
    errors = []
    for table in RESTORED_TABLES:
        try:
            decoded[table.key] = decode_records(table, document[table.key])
        except BackupFormatError as e:
            errors.extend(e.errors)
    if errors:
        raise BackupFormatError('Backup contains invalid values.', errors=errors)
    return decoded


def _restore_users(rows):
    """Upsert users; returns a map from backup user id to local user id."""
    id_map = {}
    for values in rows:
        values, timestamps = _split_timestamps(dict(values))
        backup_id = values.pop('id')

        user = User.objects.filter(pk=backup_id).first()
        if user is None:
            user = User.objects.filter(email__iexact=values['email']).first()

        if user is None:
            user = User(id=backup_id, **values)
            user.set_unusable_password()
            user.password_reset_required = True
            user.save()
        else:
            for name, value in values.items():
                setattr(user, name, value)
            user.save()

        _restore_timestamps(User, user.pk, timestamps)
        id_map[str(backup_id)] = user.pk
    return id_map


def _map_user(id_map, user_id):
    return id_map.get(str(user_id), user_id)


def _upsert(model, values, **overrides):
    values, timestamps = _split_timestamps(dict(values))
    pk = values.pop('id')
    values.update(overrides)
    model.objects.update_or_create(pk=pk, defaults=values)
    _restore_timestamps(model, pk, timestamps)
    return pk


def restore_backup(document, *, actor, dry_run=False, skip_verification=False) -> RestoreResult:
    """
    Restore a backup document.

    Args:
        document: Parsed backup document
        actor: Actor performing the restore
        dry_run: Validate and count without writing anything
        skip_verification: Do not check counts and checksums first

    Returns:
        RestoreResult

    Raises:
        BackupFormatError: Malformed document or dangling references
        BackupVerificationError: Counts, checksums or required fields differ
    """
    _check_structure(document)
    metadata = document['metadata']
    backup_id = str(metadata.get('id', 'unknown'))

    if not skip_verification:
        verification = verify_backup(document)
        if not verification['is_valid']:
            raise BackupVerificationError('Backup verification failed.', errors=verification['errors'])

    _check_references(document)
    decoded = _decode_document(document)

    result = RestoreResult(
        backup_id=backup_id,
        backup_type=str(metadata.get('type', '')),
        dry_run=dry_run,
        restored_counts={table.key: len(document[table.key]) for table in TABLES},
    )
    if dry_run:
        logger.info("Dry run of backup %s: %s", backup_id, result.restored_counts)
        return result

    logger.warning("Restoring backup %s requested by %s", backup_id, actor.user_id)
    with transaction.atomic():
        record_audit(
            actor=actor,
            action=AuditAction.BACKUP_RESTORE_STARTED,
            entity_type='System',
            entity_id=backup_id,
            new_values={
                'backupType': result.backup_type,
                'backupTimestamp': metadata.get('timestamp'),
                'recordCounts': metadata.get('recordCounts'),
            },
        )

        id_map = _restore_users(decoded[USERS.key])

        for values in decoded[TOKEN_PURCHASES.key]:
            _upsert(TokenPurchase, values, created_by_id=_map_user(id_map, values['created_by_id']))

        for values in decoded[RECEIPT_DATA.key]:
            ReceiptData.objects.filter(purchase_id=values['purchase_id']).exclude(pk=values['id']).delete()
            _upsert(ReceiptData, values)

        for values in decoded[USER_CONTRIBUTIONS.key]:
            # One contribution per purchase: the backup's wins
            UserContribution.objects.filter(purchase_id=values['purchase_id']).exclude(pk=values['id']).delete()
            _upsert(UserContribution, values, user_id=_map_user(id_map, values['user_id']))

        for values in decoded[METER_READINGS.key]:
            _upsert(MeterReading, values, user_id=_map_user(id_map, values['user_id']))

        report = recalculate_all_tokens_consumed()
        result.tokens_recalculated = report.updated
        invalidate_sequential_cache()

        record_audit(
            actor=actor,
            action=AuditAction.BACKUP_RESTORE_COMPLETED,
            entity_type='System',
            entity_id=backup_id,
            new_values={
                'restoredCounts': result.restored_counts,
                'tokensRecalculated': result.tokens_recalculated,
            },
        )

    logger.info("Backup %s restored: %s", backup_id, result.restored_counts)
    return result
