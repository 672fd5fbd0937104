"""Audit trail writer used by every mutating service."""

import hashlib
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)


def snapshot(instance):
    """Return a JSON-safe dict of the instance's concrete field values."""
    values = {
        field.attname: getattr(instance, field.attname)
        for field in instance._meta.concrete_fields
        if field.name != 'password'
    }
    return json.loads(json.dumps(values, cls=DjangoJSONEncoder))


def integrity_hash(entry, timestamp):
    payload = json.dumps(
        {'entry': entry, 'timestamp': timestamp.isoformat()},
        cls=DjangoJSONEncoder,
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()


def record_audit(*, actor, action, entity_type, entity_id, old_values=None,
                 new_values=None, metadata=None) -> AuditLog:
    """
    Append an audit log entry.

    Call inside the same ``transaction.atomic()`` block as the change it
    describes so a failed write rolls both back.
    """
    timestamp = timezone.now()
    entry = {
        'user_id': str(actor.user_id) if actor.user_id else None,
        'action': str(action),
        'entity_type': entity_type,
        'entity_id': str(entity_id),
        'old_values': old_values,
        'new_values': new_values,
    }
    meta = dict(metadata or {})
    meta['hash'] = integrity_hash(entry, timestamp)

    log = AuditLog.objects.create(
        user_id=actor.user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_values=old_values,
        new_values=new_values,
        metadata=meta,
        timestamp=timestamp,
    )
    logger.debug("Audit %s %s:%s by %s", action, entity_type, entity_id, actor.user_id)
    return log


def verify_integrity(log: AuditLog) -> bool:
    """Recompute an entry's hash and compare it with the stored one."""
    entry = {
        'user_id': str(log.user_id) if log.user_id else None,
        'action': log.action,
        'entity_type': log.entity_type,
        'entity_id': log.entity_id,
        'old_values': log.old_values,
        'new_values': log.new_values,
    }
    return log.metadata.get('hash') == integrity_hash(entry, log.timestamp)
