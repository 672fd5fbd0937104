from rest_framework import serializers
from .models import TokenPurchase, UserContribution, ReceiptData
from apps.accounts.serializers import UserMinimalSerializer


def money(value):
    """Currency is stored unrounded and rounded to 2 dp for display."""
    return round(value, 2)


# =============================================================================
# Input Serializers
# =============================================================================

class PurchaseFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for purchase filtering.

    Query Parameters:
        created_by (UUID): Filter by the member who recorded the purchase
        is_emergency (bool): Filter emergency purchases
        has_contribution (bool): Filter by contribution status
        date_from (date): Filter purchases from this date
        date_to (date): Filter purchases to this date
    """

    created_by = serializers.UUIDField(required=False)
    is_emergency = serializers.BooleanField(required=False, allow_null=True, default=None)
    has_contribution = serializers.BooleanField(required=False, allow_null=True, default=None)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        """Validate date range."""
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to:
            if date_from > date_to:
                raise serializers.ValidationError({
                    'date_to': 'End date must be after start date'
                })

        return attrs


class ReceiptInputSerializer(serializers.Serializer):
    token_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    account_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    kwh_purchased = serializers.FloatField(min_value=0)
    energy_cost_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    debt_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    rea_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    vat_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    total_amount_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    tendered_zwg = serializers.FloatField(min_value=0, required=False, default=0)
    transaction_datetime = serializers.DateTimeField()


class PurchaseCreateSerializer(serializers.Serializer):
    total_tokens = serializers.FloatField(min_value=0.01)
    total_payment = serializers.FloatField(min_value=0.01)
    meter_reading = serializers.FloatField(min_value=0)
    purchase_date = serializers.DateTimeField()
    is_emergency = serializers.BooleanField(required=False, default=False)
    receipt = ReceiptInputSerializer(required=False, allow_null=True)


class PurchaseUpdateSerializer(serializers.Serializer):
    total_tokens = serializers.FloatField(min_value=0.01, required=False)
    total_payment = serializers.FloatField(min_value=0.01, required=False)
    meter_reading = serializers.FloatField(min_value=0, required=False)
    purchase_date = serializers.DateTimeField(required=False)
    is_emergency = serializers.BooleanField(required=False)


class PurchaseDeleteSerializer(serializers.Serializer):
    with_contribution = serializers.BooleanField(required=False, default=False)


class ContributionFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for contribution filtering.

    Query Parameters:
        purchase (UUID): Filter by purchase ID
        user (UUID): Filter by contributing member
    """

    purchase = serializers.UUIDField(required=False)
    user = serializers.UUIDField(required=False)


class ContributionCreateSerializer(serializers.Serializer):
    purchase = serializers.UUIDField()
    contribution_amount = serializers.FloatField(min_value=0.01)
    meter_reading = serializers.FloatField(min_value=0)
    user = serializers.UUIDField(required=False, help_text="Admins only: contribute on behalf of this member")


class ContributionUpdateSerializer(serializers.Serializer):
    contribution_amount = serializers.FloatField(min_value=0.01, required=False)
    meter_reading = serializers.FloatField(min_value=0, required=False)


class ValidateSequentialPurchaseSerializer(serializers.Serializer):
    purchase_date = serializers.DateTimeField()


# =============================================================================
# Output Serializers
# =============================================================================

class ReceiptDataSerializer(serializers.ModelSerializer):

    class Meta:
        model = ReceiptData
        fields = [
            'id',
            'token_number',
            'account_number',
            'kwh_purchased',
            'energy_cost_zwg',
            'debt_zwg',
            'rea_zwg',
            'vat_zwg',
            'total_amount_zwg',
            'tendered_zwg',
            'transaction_datetime',
        ]
        read_only_fields = fields


class ContributionSerializer(serializers.ModelSerializer):
    """Contribution with its member and derived consumption."""

    user = UserMinimalSerializer(read_only=True)
    purchase_date = serializers.DateTimeField(source='purchase.purchase_date', read_only=True)
    contribution_amount = serializers.SerializerMethodField()

    class Meta:
        model = UserContribution
        fields = [
            'id',
            'purchase',
            'purchase_date',
            'user',
            'contribution_amount',
            'meter_reading',
            'tokens_consumed',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_contribution_amount(self, obj) -> float:
        return money(obj.contribution_amount)


class ContributionSummarySerializer(serializers.ModelSerializer):
    """Contribution nested inside a purchase."""

    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = UserContribution
        fields = ['id', 'user', 'contribution_amount', 'tokens_consumed', 'created_at']
        read_only_fields = fields


class TokenPurchaseSerializer(serializers.ModelSerializer):
    """Purchase with its contribution, receipt and gate status."""

    created_by = UserMinimalSerializer(read_only=True)
    contribution = serializers.SerializerMethodField()
    receipt = serializers.SerializerMethodField()
    has_contribution = serializers.BooleanField(read_only=True)
    price_per_token = serializers.SerializerMethodField()
    total_payment = serializers.SerializerMethodField()

    class Meta:
        model = TokenPurchase
        fields = [
            'id',
            'total_tokens',
            'total_payment',
            'price_per_token',
            'meter_reading',
            'purchase_date',
            'is_emergency',
            'created_by',
            'has_contribution',
            'contribution',
            'receipt',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_contribution(self, obj):
        if not obj.has_contribution:
            return None
        return ContributionSummarySerializer(obj.contribution).data

    def get_receipt(self, obj):
        try:
            receipt = obj.receipt
        except ReceiptData.DoesNotExist:
            return None
        return ReceiptDataSerializer(receipt).data

    def get_price_per_token(self, obj) -> float:
        return round(obj.price_per_token, 4)

    def get_total_payment(self, obj) -> float:
        return money(obj.total_payment)


class PurchaseSnapshotSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    purchase_date = serializers.DateTimeField()
    total_tokens = serializers.FloatField()
    total_payment = serializers.FloatField()
    meter_reading = serializers.FloatField()
    is_emergency = serializers.BooleanField()


class SequentialStatusSerializer(serializers.Serializer):
    next_available_purchase = PurchaseSnapshotSerializer(allow_null=True)
    count_without_contribution = serializers.IntegerField()
    all_satisfied = serializers.BooleanField()


class ContributionProgressSerializer(serializers.Serializer):
    total_purchases = serializers.IntegerField()
    purchases_with_contributions = serializers.IntegerField()
    next_purchase_to_contribute = PurchaseSnapshotSerializer(allow_null=True)
    progress_percentage = serializers.SerializerMethodField()

    def get_progress_percentage(self, obj) -> float:
        return round(obj.progress_percentage, 1)


class GateDecisionSerializer(serializers.Serializer):
    allowed = serializers.BooleanField()
    reason_code = serializers.SerializerMethodField()
    reason = serializers.CharField()
    blocking_purchase_id = serializers.UUIDField(allow_null=True)

    def get_reason_code(self, obj):
        return obj.reason_code.value if obj.reason_code else None


class BalanceRowSerializer(serializers.Serializer):
    contribution_id = serializers.UUIDField()
    purchase_id = serializers.UUIDField()
    user_id = serializers.UUIDField()
    purchase_date = serializers.DateTimeField()
    contribution_amount = serializers.SerializerMethodField()
    tokens_consumed = serializers.FloatField()
    fair_share = serializers.SerializerMethodField()
    balance_change = serializers.SerializerMethodField()
    running_balance = serializers.SerializerMethodField()

    def get_contribution_amount(self, obj) -> float:
        return money(obj.contribution_amount)

    def get_fair_share(self, obj) -> float:
        return money(obj.fair_share)

    def get_balance_change(self, obj) -> float:
        return money(obj.balance_change)

    def get_running_balance(self, obj) -> float:
        return money(obj.running_balance)


class RecalculationChangeSerializer(serializers.Serializer):
    contribution_id = serializers.UUIDField()
    purchase_id = serializers.UUIDField()
    old_tokens_consumed = serializers.FloatField()
    new_tokens_consumed = serializers.FloatField()


class RecalculationReportSerializer(serializers.Serializer):
    checked = serializers.IntegerField()
    updated = serializers.IntegerField()
    changes = RecalculationChangeSerializer(many=True)
