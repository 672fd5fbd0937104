# ==========================================
# apps/purchases/admin.py
# ==========================================

from django import forms
from django.contrib import admin
from django.utils.html import format_html
from .models import TokenPurchase, UserContribution, ReceiptData
from apps.accounts.capabilities import Actor
from apps.meter_readings.exceptions import MeterReadingServiceError
from .exceptions import InsufficientPermissionsError, PurchaseServiceError
from .services import (
    can_delete_contribution,
    check_purchase_update,
    delete_contribution,
    delete_purchase,
    run_recalculation,
    update_purchase,
)
from .services.purchase_management import EDITABLE_FIELDS


class ReadOnlyInline(admin.StackedInline):
    """Inline shown for reference; changes go through the purchase services."""
    extra = 0

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class ContributionInline(ReadOnlyInline):
    model = UserContribution


class ReceiptInline(ReadOnlyInline):
    model = ReceiptData


class TokenPurchaseAdminForm(forms.ModelForm):
    """Runs the same checks as ``update_purchase`` so refusals show on the form."""

    actor = None

    class Meta:
        model = TokenPurchase
        fields = list(EDITABLE_FIELDS)

    def clean(self):
        cleaned_data = super().clean()
        if self.errors:
            return cleaned_data
        changes = {name: cleaned_data[name] for name in self.changed_data if name in cleaned_data}
        try:
            check_purchase_update(actor=self.actor, purchase=self.instance, changes=changes)
        except (PurchaseServiceError, MeterReadingServiceError, InsufficientPermissionsError) as e:
            raise forms.ValidationError(str(e))
        return cleaned_data


@admin.register(TokenPurchase)
class TokenPurchaseAdmin(admin.ModelAdmin):
    """
    Admin interface for token purchases.

    - Purchase listing with contribution status
    - Edits and deletes run through the purchase services (audit, recalculation)
    - Action to rebuild tokens consumed
    """

    form = TokenPurchaseAdminForm

    list_display = [
        'purchase_date',
        'total_tokens',
        'total_payment',
        'meter_reading',
        'is_emergency',
        'created_by',
        'contribution_badge',
    ]

    list_filter = ['is_emergency', 'purchase_date', 'created_at']
    search_fields = ['created_by__email', 'created_by__name']
    date_hierarchy = 'purchase_date'
    readonly_fields = ['created_by', 'created_at', 'updated_at']
    inlines = [ContributionInline, ReceiptInline]
    actions = ['recalculate_tokens']

    def contribution_badge(self, obj):
        """Display contribution status as colored badge."""
        if obj.has_contribution:
            return format_html(
                '<span style="background: #6B8E5E; color: white; padding: 3px 8px; '
                'border-radius: 10px; font-size: 11px;">Contributed</span>'
            )
        return format_html(
            '<span style="background: #E5C49A; color: #2C1810; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">Pending</span>'
        )
    contribution_badge.short_description = 'Contribution'

    def has_add_permission(self, request):
        # New purchases go through the API, which runs the sequential gate.
        return False

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.has_contribution:
            return False
        return super().has_delete_permission(request, obj)

    def get_form(self, request, obj=None, **kwargs):
        form = super().get_form(request, obj, **kwargs)
        form.actor = Actor.from_user(request.user)
        return form

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def save_model(self, request, obj, form, change):
        changes = {name: form.cleaned_data[name] for name in form.changed_data if name in EDITABLE_FIELDS}
        update_purchase(actor=Actor.from_user(request.user), purchase_id=obj.pk, **changes)

    def delete_model(self, request, obj):
        delete_purchase(actor=Actor.from_user(request.user), purchase_id=obj.pk)

    @admin.action(description='Recalculate tokens consumed for all contributions')
    def recalculate_tokens(self, request, queryset):
        report = run_recalculation(actor=Actor.from_user(request.user))
        self.message_user(
            request,
            f'Checked {report.checked} contribution(s), updated {report.updated}.',
        )


@admin.register(UserContribution)
class UserContributionAdmin(admin.ModelAdmin):
    """
    Contributions are view-only here. Deletion is offered only for the
    contribution the sequential gate would let go.
    """

    list_display = ['purchase', 'user', 'contribution_amount', 'tokens_consumed', 'created_at']
    list_filter = ['created_at']
    search_fields = ['user__email', 'user__name']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        if obj is not None and not can_delete_contribution(obj.pk).allowed:
            return False
        return super().has_delete_permission(request, obj)

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop('delete_selected', None)
        return actions

    def delete_model(self, request, obj):
        delete_contribution(actor=Actor.from_user(request.user), contribution_id=obj.pk)
