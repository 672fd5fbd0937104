from django.core.exceptions import ObjectDoesNotExist
from django.core.validators import MinValueValidator
from django.db import models
import uuid


# Oldest first; ties on purchase_date fall back to creation order, then id
CHRONOLOGICAL_ORDER = ('purchase_date', 'created_at', 'id')
REVERSE_CHRONOLOGICAL_ORDER = ('-purchase_date', '-created_at', '-id')


class TokenPurchase(models.Model):
    """A prepaid electricity token purchase, paid up front by one member."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    total_tokens = models.FloatField(validators=[MinValueValidator(0)])
    total_payment = models.FloatField(validators=[MinValueValidator(0)])
    meter_reading = models.FloatField(validators=[MinValueValidator(0)])
    purchase_date = models.DateTimeField()
    is_emergency = models.BooleanField(default=False)

    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='token_purchases'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'token_purchases'
        indexes = [
            models.Index(fields=['purchase_date'], name='token_purchase_date_idx'),
            models.Index(fields=['created_by', 'purchase_date'], name='token_purchase_user_idx'),
        ]
        ordering = list(REVERSE_CHRONOLOGICAL_ORDER)

    def __str__(self):
        kind = "Emergency" if self.is_emergency else "Regular"
        return f"{self.total_tokens} kWh for {self.total_payment} ({kind}, {self.purchase_date:%Y-%m-%d})"

    @property
    def has_contribution(self):
        try:
            self.contribution
        except ObjectDoesNotExist:
            return False
        return True

    @property
    def price_per_token(self):
        if not self.total_tokens:
            return 0.0
        return self.total_payment / self.total_tokens


class UserContribution(models.Model):
    """A member's payment against exactly one purchase."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    purchase = models.OneToOneField(
        TokenPurchase,
        on_delete=models.CASCADE,
        related_name='contribution'
    )
    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='contributions'
    )

    contribution_amount = models.FloatField(validators=[MinValueValidator(0)])
    # Must equal the purchase's meter reading
    meter_reading = models.FloatField(validators=[MinValueValidator(0)])
    # Derived by reconciliation, never accepted from clients
    tokens_consumed = models.FloatField(default=0)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'user_contributions'
        indexes = [
            models.Index(fields=['user', 'created_at'], name='contribution_user_idx'),
            models.Index(fields=['created_at'], name='contribution_created_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user.get_display_name()} paid {self.contribution_amount} ({self.tokens_consumed} kWh)"


class ReceiptData(models.Model):
    """Optional vendor receipt details stored alongside a purchase."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    purchase = models.OneToOneField(
        TokenPurchase,
        on_delete=models.CASCADE,
        related_name='receipt'
    )

    token_number = models.CharField(max_length=50, blank=True)
    account_number = models.CharField(max_length=50, blank=True)

    kwh_purchased = models.FloatField(validators=[MinValueValidator(0)])
    energy_cost_zwg = models.FloatField(default=0)
    debt_zwg = models.FloatField(default=0)
    rea_zwg = models.FloatField(default=0)
    vat_zwg = models.FloatField(default=0)
    total_amount_zwg = models.FloatField(default=0)
    tendered_zwg = models.FloatField(default=0)

    transaction_datetime = models.DateTimeField()

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'receipt_data'
        ordering = ['-transaction_datetime']

    def __str__(self):
        return f"Receipt {self.token_number or self.pk} ({self.kwh_purchased} kWh)"
