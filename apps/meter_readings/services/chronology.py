"""
Meter-reading chronology validation.

Purchases, contributions and standalone meter readings all record a value
of the same physical meter. They are merged into a single sequence of
``ReadingEvent`` values ordered by time, and every new or edited reading
is checked against its neighbours in that sequence: the meter never runs
backwards.

Contributions are dated at their parent purchase's ``purchase_date``.
Standalone readings carry only a calendar date and are placed at midnight
UTC of that date.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timezone as dt_timezone
from enum import Enum
from typing import List, Optional

from django.db.models import Sum
from django.utils import timezone

from apps.meter_readings.models import MeterReading
from apps.purchases.models import CHRONOLOGICAL_ORDER, TokenPurchase

logger = logging.getLogger(__name__)

AVERAGE_DAILY_USAGE_KWH = 12
MINIMUM_SUGGESTED_INCREMENT_KWH = 10
DEFAULT_FIRST_READING_SUGGESTION = 5000.0


class ReadingSource(str, Enum):
    PURCHASE = 'PURCHASE'
    CONTRIBUTION = 'CONTRIBUTION'
    METER_READING = 'METER_READING'


@dataclass(frozen=True)
class ReadingEvent:
    """One observed meter value."""

    kind: ReadingSource
    value: float
    at: datetime
    source_id: uuid.UUID

    @property
    def sort_key(self):
        return (self.at, self.value)


@dataclass(frozen=True)
class ChronologyResult:
    valid: bool
    error: str = ''
    code: str = ''
    suggested_minimum: Optional[float] = None
    last_reading: Optional[ReadingEvent] = None


@dataclass(frozen=True)
class ReadingSuggestion:
    minimum: float
    suggestion: float
    context: str


def reading_date_to_datetime(value: date) -> datetime:
    """Midnight UTC of a calendar date."""
    return datetime.combine(value, time.min, tzinfo=dt_timezone.utc)


def _as_datetime(at) -> datetime:
    if isinstance(at, datetime):
        if timezone.is_naive(at):
            return timezone.make_aware(at, dt_timezone.utc)
        return at
    return reading_date_to_datetime(at)


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def collect_reading_events(*, exclude_id=None, until=None, after=None) -> List[ReadingEvent]:
    """
    Build the merged reading sequence, sorted ascending by (time, value).

    Args:
        exclude_id: Drop the purchase (and its contribution), the
            contribution, or the meter reading with this id. Used when the
            caller is editing that record.
        until: Keep only events at or before this moment.
        after: Keep only events strictly after this moment.

    Returns:
        List of ReadingEvent
    """
    exclude_id = _as_uuid(exclude_id)
    purchases = TokenPurchase.objects.select_related('contribution').order_by(*CHRONOLOGICAL_ORDER)
    readings = MeterReading.objects.all()

    if exclude_id is not None:
        purchases = purchases.exclude(pk=exclude_id)
        readings = readings.exclude(pk=exclude_id)
    if until is not None:
        until = _as_datetime(until)
        purchases = purchases.filter(purchase_date__lte=until)
        readings = readings.filter(reading_date__lte=until.astimezone(dt_timezone.utc).date())
    if after is not None:
        after = _as_datetime(after)
        purchases = purchases.filter(purchase_date__gt=after)
        readings = readings.filter(reading_date__gt=after.astimezone(dt_timezone.utc).date())

    events = []
    for purchase in purchases:
        events.append(ReadingEvent(
            kind=ReadingSource.PURCHASE,
            value=purchase.meter_reading,
            at=purchase.purchase_date,
            source_id=purchase.pk,
        ))
        if purchase.has_contribution and purchase.contribution.pk != exclude_id:
            events.append(ReadingEvent(
                kind=ReadingSource.CONTRIBUTION,
                value=purchase.contribution.meter_reading,
                at=purchase.purchase_date,
                source_id=purchase.contribution.pk,
            ))

    for reading in readings:
        events.append(ReadingEvent(
            kind=ReadingSource.METER_READING,
            value=reading.reading,
            at=reading_date_to_datetime(reading.reading_date),
            source_id=reading.pk,
        ))

    events.sort(key=lambda event: event.sort_key)
    return events


def find_last_reading_before(at, exclude_id=None) -> Optional[ReadingEvent]:
    """Latest event at or before ``at``; on a time tie the highest value wins."""
    events = collect_reading_events(exclude_id=exclude_id, until=at)
    return events[-1] if events else None


def validate_chronology(new_reading, at, exclude_id=None) -> ChronologyResult:
    """
    Check that ``new_reading`` does not fall below the last earlier reading.

    Args:
        new_reading: Proposed meter value in kWh
        at: Moment the value is recorded (datetime, or date for standalone readings)
        exclude_id: Record being edited, left out of the comparison

    Returns:
        ChronologyResult; invalid results name the prior value and date and
        suggest it as the minimum.
    """
    last = find_last_reading_before(at, exclude_id=exclude_id)
    if last is None or new_reading >= last.value:
        return ChronologyResult(valid=True, last_reading=last)

    logger.debug("Reading %s at %s is below %s at %s", new_reading, at, last.value, last.at)
    return ChronologyResult(
        valid=False,
        error=(
            f"Meter reading cannot decrease. The last reading on "
            f"{last.at:%Y-%m-%d} was {last.value:,.2f} kWh."
        ),
        code='READING_BELOW_PREVIOUS',
        suggested_minimum=last.value,
        last_reading=last,
    )


def validate_forward_consistency(new_reading, at, exclude_id=None) -> ChronologyResult:
    """Check that no event strictly after ``at`` is smaller than ``new_reading``."""
    later = collect_reading_events(exclude_id=exclude_id, after=at)
    for event in later:
        if event.value < new_reading:
            return ChronologyResult(
                valid=False,
                error=(
                    f"Meter reading cannot exceed a later reading. The reading on "
                    f"{event.at:%Y-%m-%d} was {event.value:,.2f} kWh."
                ),
                code='READING_ABOVE_LATER',
                last_reading=event,
            )
    return ChronologyResult(valid=True)


def validate_contribution_meter_reading(contribution_reading, purchase_id) -> ChronologyResult:
    """A contribution's meter reading must equal its purchase's exactly."""
    purchase = TokenPurchase.objects.filter(pk=purchase_id).first()
    if purchase is None:
        return ChronologyResult(valid=False, error='Purchase not found.', code='PURCHASE_NOT_FOUND')

    if contribution_reading != purchase.meter_reading:
        return ChronologyResult(
            valid=False,
            error=(
                f"Contribution meter reading must match the purchase meter reading "
                f"exactly: {purchase.meter_reading:,.2f} kWh. "
                f"Current: {contribution_reading:,.2f} kWh."
            ),
            code='METER_READING_MISMATCH',
            suggested_minimum=purchase.meter_reading,
        )
    return ChronologyResult(valid=True)


def validate_reading_ceiling(new_reading, reading_date) -> ChronologyResult:
    """
    A standalone reading cannot exceed what has been bought so far.

    The ceiling is the first purchase's meter reading plus every token
    purchased on or before ``reading_date``.
    """
    first = TokenPurchase.objects.order_by(*CHRONOLOGICAL_ORDER).first()
    if first is None:
        return ChronologyResult(
            valid=False,
            error='No token purchases found. Record a purchase before adding meter readings.',
            code='NO_PURCHASES',
        )

    if isinstance(reading_date, datetime):
        reading_date = reading_date.astimezone(dt_timezone.utc).date()
    purchased = TokenPurchase.objects.filter(
        purchase_date__date__lte=reading_date,
    ).aggregate(total=Sum('total_tokens'))['total'] or 0.0
    ceiling = first.meter_reading + purchased

    if new_reading > ceiling:
        return ChronologyResult(
            valid=False,
            error=(
                f"Meter reading cannot exceed {ceiling:,.2f} kWh: the first purchase "
                f"reading plus all tokens purchased up to {reading_date:%Y-%m-%d}."
            ),
            code='READING_ABOVE_CEILING',
        )
    return ChronologyResult(valid=True)


def get_meter_reading_suggestion(at, exclude_id=None) -> ReadingSuggestion:
    """Suggest a plausible next reading from the last known one."""
    at = _as_datetime(at)
    last = find_last_reading_before(at, exclude_id=exclude_id)
    if last is None:
        return ReadingSuggestion(
            minimum=0.0,
            suggestion=DEFAULT_FIRST_READING_SUGGESTION,
            context='No previous meter readings found. Enter your current meter reading.',
        )

    days = math.ceil((at - last.at).total_seconds() / 86400)
    increment = max(days * AVERAGE_DAILY_USAGE_KWH, MINIMUM_SUGGESTED_INCREMENT_KWH)
    return ReadingSuggestion(
        minimum=last.value,
        suggestion=last.value + increment,
        context=(
            f"Last reading was {last.value:,.2f} kWh on {last.at:%Y-%m-%d} "
            f"({last.kind.value.lower().replace('_', ' ')}). Suggested: ~{increment} kWh increase."
        ),
    )
