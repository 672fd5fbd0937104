from datetime import date

import pytest

from apps.accounts.capabilities import Actor
from apps.audit.models import AuditAction, AuditLog
from apps.meter_readings.exceptions import (
    ChronologyViolationError,
    InsufficientPermissionsError,
)
from apps.meter_readings.models import MeterReading
from apps.meter_readings import services


@pytest.mark.django_db
class TestMeterReadingServices:
    """Tests for meter reading create, edit and delete."""

    def test_create_records_audit(self, make_purchase, reader_actor):
        make_purchase(1, 1000)

        meter_reading = services.create_meter_reading(
            actor=reader_actor,
            reading=1040,
            reading_date=date(2024, 1, 3),
            notes='Morning check',
        )

        assert meter_reading.user_id == reader_actor.user_id
        log = AuditLog.objects.get(entity_id=str(meter_reading.pk))
        assert log.action == AuditAction.CREATE
        assert log.entity_type == 'MeterReading'

    def test_create_requires_capability(self, make_purchase, member):
        make_purchase(1, 1000)

        with pytest.raises(InsufficientPermissionsError):
            services.create_meter_reading(
                actor=Actor.from_user(member),
                reading=1040,
                reading_date=date(2024, 1, 3),
            )

    def test_create_requires_a_purchase(self, reader_actor):
        with pytest.raises(ChronologyViolationError) as exc_info:
            services.create_meter_reading(actor=reader_actor, reading=10, reading_date=date(2024, 1, 3))

        assert exc_info.value.reason_code == 'NO_PURCHASES'

    def test_create_rejects_decrease(self, make_purchase, reader_actor):
        make_purchase(1, 1000)

        with pytest.raises(ChronologyViolationError) as exc_info:
            services.create_meter_reading(actor=reader_actor, reading=999, reading_date=date(2024, 1, 3))

        assert exc_info.value.suggested_minimum == 1000
        assert not MeterReading.objects.exists()

    def test_update_excludes_itself(self, make_purchase, make_reading, reader_actor):
        make_purchase(1, 1000)
        meter_reading = make_reading(3, 1050)

        updated = services.update_meter_reading(
            actor=reader_actor,
            reading_id=meter_reading.pk,
            reading=1020,
        )

        assert updated.reading == 1020

    def test_update_checks_later_readings(self, make_purchase, make_reading, reader_actor):
        make_purchase(1, 1000)
        meter_reading = make_reading(3, 1030)
        make_reading(5, 1050)

        with pytest.raises(ChronologyViolationError) as exc_info:
            services.update_meter_reading(actor=reader_actor, reading_id=meter_reading.pk, reading=1060)

        assert exc_info.value.reason_code == 'READING_ABOVE_LATER'

    def test_notes_only_edit_skips_checks(self, make_reading, reader_actor):
        meter_reading = make_reading(3, 1030)

        updated = services.update_meter_reading(
            actor=reader_actor,
            reading_id=meter_reading.pk,
            notes='Photo taken',
        )

        assert updated.notes == 'Photo taken'

    def test_only_owner_or_admin_deletes(self, make_reading, member, admin_user):
        meter_reading = make_reading(3, 1030)

        with pytest.raises(InsufficientPermissionsError):
            services.delete_meter_reading(actor=Actor.from_user(member), reading_id=meter_reading.pk)
        services.delete_meter_reading(actor=Actor.from_user(admin_user), reading_id=meter_reading.pk)

        assert not MeterReading.objects.exists()

    def test_latest(self, make_reading):
        make_reading(3, 1030)
        newest = make_reading(7, 1080)

        assert services.get_latest_meter_reading() == newest
