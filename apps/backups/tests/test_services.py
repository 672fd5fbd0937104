import copy
import json
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from apps.accounts.models import User
from apps.audit.models import AuditAction, AuditLog
from apps.backups.exceptions import BackupFormatError, BackupVerificationError
from apps.backups.services import (
    TABLES,
    calculate_checksum,
    create_backup,
    restore_backup,
    verify_backup,
)
from apps.meter_readings.models import MeterReading
from apps.purchases.models import ReceiptData, TokenPurchase, UserContribution
from apps.purchases.services import calculate_running_balance, recalculate_all_tokens_consumed


def wipe_ledger():
    TokenPurchase.objects.all().delete()
    MeterReading.objects.all().delete()


def balance_snapshot():
    return [
        (row.contribution_id, round(row.tokens_consumed, 6), round(row.running_balance, 6))
        for row in calculate_running_balance()
    ]


def reseal(document):
    """Recompute counts and checksums after editing a document."""
    metadata = document['metadata']
    for table in TABLES:
        metadata['recordCounts'][table.key] = len(document[table.key])
        metadata['checksums'][table.key] = calculate_checksum(document[table.key])
    return document


@pytest.mark.django_db
class TestCreateBackup:
    """Tests for backup export."""

    def test_full_backup_layout(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        metadata = document['metadata']
        assert metadata['type'] == 'full'
        assert metadata['id'].startswith('backup_')
        assert metadata['recordCounts'] == {
            'users': 2,
            'tokenPurchases': 3,
            'receiptData': 1,
            'userContributions': 2,
            'meterReadings': 1,
            'accounts': 0,
            'sessions': 0,
            'verificationTokens': 0,
        }
        assert document['accounts'] == []
        assert document['sessions'] == []
        assert document['verificationTokens'] == []

    def test_records_are_flat_camel_case(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        contribution = document['userContributions'][0]
        assert set(contribution) >= {'id', 'purchaseId', 'userId', 'contributionAmount', 'tokensConsumed'}
        assert isinstance(contribution['purchaseId'], str)
        assert document['meterReadings'][0]['readingDate'] == '2024-01-15'

    def test_password_hashes_not_exported(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        for user in document['users']:
            assert 'password' not in user

    def test_document_is_json_serialisable(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        assert json.loads(json.dumps(document)) == document

    def test_audited(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        log = AuditLog.objects.get(action=AuditAction.BACKUP_CREATED)
        assert log.entity_id == document['metadata']['id']
        assert log.user_id == admin_actor.user_id

    def test_incremental_backup(self, ledger, admin_actor):
        since = datetime.now(timezone.utc) + timedelta(hours=1)

        document = create_backup(actor=admin_actor, since=since)

        assert document['metadata']['type'] == 'incremental'
        assert document['metadata']['since'] == since.isoformat()
        assert document['tokenPurchases'] == []

    def test_incremental_includes_updated_records(self, ledger, admin_actor):
        since = datetime.now(timezone.utc)
        purchase = ledger['purchases'][2]
        purchase.total_payment = 85
        purchase.save()

        document = create_backup(actor=admin_actor, since=since)

        assert [record['id'] for record in document['tokenPurchases']] == [str(purchase.id)]


@pytest.mark.django_db
class TestVerifyBackup:
    """Tests for backup verification."""

    def test_valid(self, ledger, admin_actor):
        result = verify_backup(create_backup(actor=admin_actor))

        assert result['is_valid'] is True
        assert result['errors'] == []
        assert all(result['checksum_matches'].values())

    def test_tampered_record(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['userContributions'][0]['contributionAmount'] = 1

        result = verify_backup(document)

        assert result['is_valid'] is False
        assert result['checksum_matches']['userContributions'] is False
        assert result['checksum_matches']['tokenPurchases'] is True

    def test_count_mismatch(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['meterReadings'].append(copy.deepcopy(document['meterReadings'][0]))

        result = verify_backup(document)

        assert any('Record count mismatch for meterReadings' in error for error in result['errors'])

    def test_missing_required_field(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        del document['tokenPurchases'][0]['meterReading']
        reseal(document)

        result = verify_backup(document)

        assert result['is_valid'] is False
        assert "Missing required field 'meterReading' in tokenPurchases record 0" in result['errors']

    def test_missing_metadata(self):
        result = verify_backup({'users': []})

        assert result['is_valid'] is False


@pytest.mark.django_db
class TestRestoreBackup:
    """Tests for backup restore."""

    def test_round_trip_reproduces_ledger(self, ledger, admin_actor):
        recalculate_all_tokens_consumed()
        expected_balance = balance_snapshot()
        purchase = ledger['purchases'][1]
        document = json.loads(json.dumps(create_backup(actor=admin_actor)))
        wipe_ledger()

        result = restore_backup(document, actor=admin_actor)

        assert result.dry_run is False
        assert TokenPurchase.objects.count() == 3
        assert UserContribution.objects.count() == 2
        assert ReceiptData.objects.get().token_number == '1111-2222-3333'
        assert MeterReading.objects.get().notes == 'Mid-month check'
        assert TokenPurchase.objects.get(pk=purchase.pk).created_at == purchase.created_at
        assert balance_snapshot() == expected_balance
        assert recalculate_all_tokens_consumed().updated == 0

    def test_restore_recalculates_tokens(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        for record in document['userContributions']:
            record['tokensConsumed'] = 12345
        reseal(document)
        wipe_ledger()

        result = restore_backup(document, actor=admin_actor)

        assert result.tokens_recalculated == 2
        assert UserContribution.objects.get(purchase__meter_reading=1090).tokens_consumed == 90

    def test_restore_overwrites_changed_records(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        contribution = ledger['contributions'][1]
        contribution.contribution_amount = 999
        contribution.save()

        restore_backup(document, actor=admin_actor)

        contribution.refresh_from_db()
        assert contribution.contribution_amount == 60.25

    def test_audited(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)

        restore_backup(document, actor=admin_actor)

        actions = set(AuditLog.objects.values_list('action', flat=True))
        assert AuditAction.BACKUP_RESTORE_STARTED in actions
        assert AuditAction.BACKUP_RESTORE_COMPLETED in actions

    def test_dry_run_writes_nothing(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        wipe_ledger()

        result = restore_backup(document, actor=admin_actor, dry_run=True)

        assert result.dry_run is True
        assert result.restored_counts['tokenPurchases'] == 3
        assert not TokenPurchase.objects.exists()

    def test_verification_failure(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['tokenPurchases'][0]['totalPayment'] = 0

        with pytest.raises(BackupVerificationError) as exc_info:
            restore_backup(document, actor=admin_actor)

        assert any('Checksum mismatch' in error for error in exc_info.value.errors)

    def test_orphaned_contribution(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['userContributions'][0]['purchaseId'] = str(uuid.uuid4())
        wipe_ledger()

        with pytest.raises(BackupFormatError) as exc_info:
            restore_backup(document, actor=admin_actor, skip_verification=True)

        assert 'Orphaned contribution' in exc_info.value.errors[0]
        assert not TokenPurchase.objects.exists()

    def test_unknown_user(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['meterReadings'][0]['userId'] = str(uuid.uuid4())
        reseal(document)

        with pytest.raises(BackupFormatError):
            restore_backup(document, actor=admin_actor)

    def test_boolean_strings_restore_as_booleans(self, ledger, member, admin_actor):
        document = create_backup(actor=admin_actor)
        record = next(record for record in document['users'] if record['id'] == str(member.id))
        record['locked'] = 'false'
        record['isActive'] = 'no'
        reseal(document)
        User.objects.filter(pk=member.pk).update(locked=True)

        restore_backup(document, actor=admin_actor)

        member.refresh_from_db()
        assert member.locked is False
        assert member.is_active is False

    def test_invalid_values_rejected_before_writing(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        document['users'][0]['locked'] = 'maybe'
        document['tokenPurchases'][0]['purchaseDate'] = 'yesterday'
        reseal(document)
        wipe_ledger()

        with pytest.raises(BackupFormatError) as exc_info:
            restore_backup(document, actor=admin_actor, dry_run=True)

        errors = exc_info.value.errors
        assert any(error.startswith('users record 0: locked:') for error in errors)
        assert any(error.startswith('tokenPurchases record 0: purchaseDate:') for error in errors)
        assert not TokenPurchase.objects.exists()

    def test_missing_table(self, admin_actor):
        with pytest.raises(BackupFormatError):
            restore_backup({'metadata': {'id': 'x'}, 'users': []}, actor=admin_actor)

    def test_new_user_created_without_password(self, ledger, admin_actor):
        document = create_backup(actor=admin_actor)
        newcomer_id = str(uuid.uuid4())
        document['users'].append({
            **document['users'][0],
            'id': newcomer_id,
            'email': 'newcomer@example.com',
            'name': 'Newcomer',
        })
        document['meterReadings'][0]['userId'] = newcomer_id
        reseal(document)

        restore_backup(document, actor=admin_actor)

        newcomer = User.objects.get(pk=newcomer_id)
        assert newcomer.has_usable_password() is False
        assert newcomer.password_reset_required is True
        assert MeterReading.objects.get().user_id == newcomer.pk

    def test_user_matched_by_email(self, ledger, member, admin_actor):
        document = create_backup(actor=admin_actor)
        foreign_id = str(uuid.uuid4())
        for record in document['users']:
            if record['id'] == str(member.id):
                record['id'] = foreign_id
        for record in document['tokenPurchases']:
            if record['createdBy'] == str(member.id):
                record['createdBy'] = foreign_id
        reseal(document)
        wipe_ledger()

        restore_backup(document, actor=admin_actor)

        assert User.objects.count() == 2
        assert TokenPurchase.objects.filter(created_by=member).count() == 2
