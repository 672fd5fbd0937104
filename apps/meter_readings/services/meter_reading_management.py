"""Create, edit and delete standalone meter readings."""

import logging

from django.db import transaction

from apps.audit.models import AuditAction
from apps.audit.services import record_audit, snapshot
from apps.meter_readings.exceptions import (
    ChronologyViolationError,
    InsufficientPermissionsError,
    MeterReadingNotFoundError,
)
from apps.meter_readings.models import MeterReading
from .chronology import (
    reading_date_to_datetime,
    validate_chronology,
    validate_forward_consistency,
    validate_reading_ceiling,
)

logger = logging.getLogger(__name__)

ENTITY_TYPE = 'MeterReading'


def validate_meter_reading(*, reading, reading_date, exclude_id=None):
    """
    Run every chronology rule for a standalone reading.

    Returns the first failing ChronologyResult, or a valid one.
    """
    at = reading_date_to_datetime(reading_date)
    result = validate_chronology(reading, at, exclude_id=exclude_id)
    if not result.valid:
        return result
    forward = validate_forward_consistency(reading, at, exclude_id=exclude_id)
    if not forward.valid:
        return forward
    ceiling = validate_reading_ceiling(reading, reading_date)
    if not ceiling.valid:
        return ceiling
    return result


def _get_reading(reading_id):
    try:
        return MeterReading.objects.select_related('user').get(pk=reading_id)
    except MeterReading.DoesNotExist:
        raise MeterReadingNotFoundError()


def _check_can_modify(actor, meter_reading):
    if not (actor.is_admin or actor.owns(meter_reading.user_id)):
        raise InsufficientPermissionsError('You can only modify your own meter readings.')


def create_meter_reading(*, actor, reading, reading_date, notes='') -> MeterReading:
    """
    Record a standalone meter reading.

    Raises:
        InsufficientPermissionsError: Actor lacks ``can_add_meter_readings``
        ChronologyViolationError: Reading breaks the monotonic sequence
    """
    if not actor.can('can_add_meter_readings'):
        raise InsufficientPermissionsError('You do not have permission to add meter readings.')

    result = validate_meter_reading(reading=reading, reading_date=reading_date)
    if not result.valid:
        logger.warning("Meter reading %s on %s rejected: %s", reading, reading_date, result.code)
        raise ChronologyViolationError(result)

    with transaction.atomic():
        meter_reading = MeterReading.objects.create(
            user_id=actor.user_id,
            reading=reading,
            reading_date=reading_date,
            notes=notes,
        )
        record_audit(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type=ENTITY_TYPE,
            entity_id=meter_reading.pk,
            new_values=snapshot(meter_reading),
        )

    logger.info("Meter reading %s recorded: %s kWh on %s", meter_reading.pk, reading, reading_date)
    return meter_reading


def update_meter_reading(*, actor, reading_id, reading=None, reading_date=None, notes=None) -> MeterReading:
    """
    Edit a meter reading; the edited record is excluded from its own checks.

    Raises:
        MeterReadingNotFoundError
        InsufficientPermissionsError: Actor is neither owner nor admin
        ChronologyViolationError
    """
    meter_reading = _get_reading(reading_id)
    _check_can_modify(actor, meter_reading)
    old_values = snapshot(meter_reading)

    new_reading = meter_reading.reading if reading is None else reading
    new_date = meter_reading.reading_date if reading_date is None else reading_date

    if reading is not None or reading_date is not None:
        result = validate_meter_reading(
            reading=new_reading,
            reading_date=new_date,
            exclude_id=meter_reading.pk,
        )
        if not result.valid:
            raise ChronologyViolationError(result)

    meter_reading.reading = new_reading
    meter_reading.reading_date = new_date
    if notes is not None:
        meter_reading.notes = notes

    with transaction.atomic():
        meter_reading.save()
        record_audit(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_TYPE,
            entity_id=meter_reading.pk,
            old_values=old_values,
            new_values=snapshot(meter_reading),
        )

    logger.info("Meter reading %s updated", meter_reading.pk)
    return meter_reading


@transaction.atomic
def delete_meter_reading(*, actor, reading_id):
    meter_reading = _get_reading(reading_id)
    _check_can_modify(actor, meter_reading)

    old_values = snapshot(meter_reading)
    entity_id = meter_reading.pk
    meter_reading.delete()
    record_audit(
        actor=actor,
        action=AuditAction.DELETE,
        entity_type=ENTITY_TYPE,
        entity_id=entity_id,
        old_values=old_values,
    )
    logger.info("Meter reading %s deleted", entity_id)


def get_latest_meter_reading():
    return MeterReading.objects.select_related('user').order_by('-reading_date', '-created_at').first()
