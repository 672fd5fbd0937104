"""Services for meter readings business logic."""

from .chronology import (
    ReadingEvent,
    ReadingSource,
    ChronologyResult,
    ReadingSuggestion,
    collect_reading_events,
    find_last_reading_before,
    validate_chronology,
    validate_forward_consistency,
    validate_contribution_meter_reading,
    validate_reading_ceiling,
    get_meter_reading_suggestion,
)
from .meter_reading_management import (
    validate_meter_reading,
    create_meter_reading,
    update_meter_reading,
    delete_meter_reading,
    get_latest_meter_reading,
)

__all__ = [
    # Chronology
    'ReadingEvent',
    'ReadingSource',
    'ChronologyResult',
    'ReadingSuggestion',
    'collect_reading_events',
    'find_last_reading_before',
    'validate_chronology',
    'validate_forward_consistency',
    'validate_contribution_meter_reading',
    'validate_reading_ceiling',
    'get_meter_reading_suggestion',
    # Management
    'validate_meter_reading',
    'create_meter_reading',
    'update_meter_reading',
    'delete_meter_reading',
    'get_latest_meter_reading',
]
