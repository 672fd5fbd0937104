from rest_framework import serializers

from apps.accounts.models import UserRole


class BackupExportQuerySerializer(serializers.Serializer):
    """
    Query Parameters:
        since (datetime): Incremental backup of records changed at or after this moment
    """

    since = serializers.DateTimeField(required=False)


class BackupRestoreSerializer(serializers.Serializer):
    backup = serializers.JSONField()
    dry_run = serializers.BooleanField(required=False, default=True)
    skip_verification = serializers.BooleanField(required=False, default=False)


class BackupVerificationSerializer(serializers.Serializer):
    is_valid = serializers.BooleanField()
    errors = serializers.ListField(child=serializers.CharField())
    checksum_matches = serializers.DictField(child=serializers.BooleanField())


class RestoreResultSerializer(serializers.Serializer):
    backup_id = serializers.CharField()
    backup_type = serializers.CharField()
    dry_run = serializers.BooleanField()
    restored_counts = serializers.DictField(child=serializers.IntegerField())
    tokens_recalculated = serializers.IntegerField()


# ==========================================
# Backup record serializers
# ==========================================
# Each maps one table of the backup document: camelCase keys on the wire,
# model attribute names in ``validated_data``.

class TimestampedRecordSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    createdAt = serializers.DateTimeField(source='created_at', required=False, allow_null=True)
    updatedAt = serializers.DateTimeField(source='updated_at', required=False, allow_null=True)


class UserRecordSerializer(TimestampedRecordSerializer):
    """Password hashes are never part of a user record."""

    email = serializers.EmailField()
    name = serializers.CharField(allow_blank=True)
    role = serializers.ChoiceField(choices=UserRole.choices)
    permissions = serializers.JSONField(required=False)
    locked = serializers.BooleanField()
    isActive = serializers.BooleanField(source='is_active', required=False)
    passwordResetRequired = serializers.BooleanField(source='password_reset_required', required=False)


class TokenPurchaseRecordSerializer(TimestampedRecordSerializer):
    totalTokens = serializers.FloatField(source='total_tokens', min_value=0)
    totalPayment = serializers.FloatField(source='total_payment', min_value=0)
    meterReading = serializers.FloatField(source='meter_reading', min_value=0)
    purchaseDate = serializers.DateTimeField(source='purchase_date')
    isEmergency = serializers.BooleanField(source='is_emergency', required=False)
    createdBy = serializers.UUIDField(source='created_by_id')


class ReceiptDataRecordSerializer(TimestampedRecordSerializer):
    purchaseId = serializers.UUIDField(source='purchase_id')
    tokenNumber = serializers.CharField(source='token_number', required=False, allow_blank=True)
    accountNumber = serializers.CharField(source='account_number', required=False, allow_blank=True)
    kwhPurchased = serializers.FloatField(source='kwh_purchased', min_value=0)
    energyCostZwg = serializers.FloatField(source='energy_cost_zwg', required=False)
    debtZwg = serializers.FloatField(source='debt_zwg', required=False)
    reaZwg = serializers.FloatField(source='rea_zwg', required=False)
    vatZwg = serializers.FloatField(source='vat_zwg', required=False)
    totalAmountZwg = serializers.FloatField(source='total_amount_zwg', required=False)
    tenderedZwg = serializers.FloatField(source='tendered_zwg', required=False)
    transactionDateTime = serializers.DateTimeField(source='transaction_datetime')


class UserContributionRecordSerializer(TimestampedRecordSerializer):
    purchaseId = serializers.UUIDField(source='purchase_id')
    userId = serializers.UUIDField(source='user_id')
    contributionAmount = serializers.FloatField(source='contribution_amount', min_value=0)
    meterReading = serializers.FloatField(source='meter_reading', min_value=0)
    tokensConsumed = serializers.FloatField(source='tokens_consumed', required=False)


class MeterReadingRecordSerializer(TimestampedRecordSerializer):
    userId = serializers.UUIDField(source='user_id')
    reading = serializers.FloatField(min_value=0)
    readingDate = serializers.DateField(source='reading_date')
    notes = serializers.CharField(required=False, allow_blank=True)


# Tables kept for document compatibility; always exported empty.

class AccountRecordSerializer(serializers.Serializer):
    id = serializers.CharField()
    userId = serializers.CharField()
    type = serializers.CharField()
    provider = serializers.CharField()
    providerAccountId = serializers.CharField()


class SessionRecordSerializer(serializers.Serializer):
    id = serializers.CharField()
    sessionToken = serializers.CharField()
    userId = serializers.CharField()
    expires = serializers.DateTimeField()


class VerificationTokenRecordSerializer(serializers.Serializer):
    identifier = serializers.CharField()
    token = serializers.CharField()
    expires = serializers.DateTimeField()
