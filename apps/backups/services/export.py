"""Build backup documents from the live ledger."""

import logging
import secrets

from django.contrib.auth import get_user_model
from django.db.models import Q
from django.utils import timezone

from apps.audit.models import AuditAction
from apps.audit.services import record_audit
from apps.meter_readings.models import MeterReading
from apps.purchases.models import ReceiptData, TokenPurchase, UserContribution
from .format import (
    BACKUP_VERSION,
    METER_READINGS,
    RECEIPT_DATA,
    TABLES,
    TOKEN_PURCHASES,
    USER_CONTRIBUTIONS,
    USERS,
    calculate_checksum,
    encode_record,
)

logger = logging.getLogger(__name__)

User = get_user_model()

SOURCES = (
    (USERS, lambda: User.objects.order_by('created_at', 'id')),
    (TOKEN_PURCHASES, lambda: TokenPurchase.objects.order_by('purchase_date', 'created_at', 'id')),
    (RECEIPT_DATA, lambda: ReceiptData.objects.order_by('created_at', 'id')),
    (USER_CONTRIBUTIONS, lambda: UserContribution.objects.order_by('created_at', 'id')),
    (METER_READINGS, lambda: MeterReading.objects.order_by('reading_date', 'created_at', 'id')),
)


def _changed_since(queryset, since):
    if since is None:
        return queryset
    return queryset.filter(Q(created_at__gte=since) | Q(updated_at__gte=since))


def create_backup(*, actor, since=None) -> dict:
    """
    Export the ledger as a backup document.

    Args:
        actor: Actor requesting the export
        since: When given, an incremental backup of records created or
            updated at or after this moment

    Returns:
        The backup document as a JSON-safe dict
    """
    backup_type = 'full' if since is None else 'incremental'
    now = timezone.now()
    backup_id = f"{'backup' if since is None else 'incremental'}_{now:%Y%m%d%H%M%S}_{secrets.token_hex(4)}"

    document = {table.key: [] for table in TABLES}
    for table, queryset in SOURCES:
        document[table.key] = [
            encode_record(table, instance)
            for instance in _changed_since(queryset(), since)
        ]

    document['metadata'] = {
        'id': backup_id,
        'timestamp': now.isoformat(),
        'type': backup_type,
        'version': BACKUP_VERSION,
        'since': since.isoformat() if since else None,
        'recordCounts': {table.key: len(document[table.key]) for table in TABLES},
        'checksums': {table.key: calculate_checksum(document[table.key]) for table in TABLES},
    }

    record_audit(
        actor=actor,
        action=AuditAction.BACKUP_CREATED,
        entity_type='System',
        entity_id=backup_id,
        new_values={
            'type': backup_type,
            'since': document['metadata']['since'],
            'recordCounts': document['metadata']['recordCounts'],
        },
    )
    logger.info(
        "%s backup %s created by %s: %s",
        backup_type.capitalize(), backup_id, actor.user_id, document['metadata']['recordCounts'],
    )
    return document
