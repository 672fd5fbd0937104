from django import forms
from django.contrib import admin
from .models import MeterReading
from .services import delete_meter_reading, update_meter_reading, validate_meter_reading
from apps.accounts.capabilities import Actor


class MeterReadingAdminForm(forms.ModelForm):
    class Meta:
        model = MeterReading
        fields = ['reading', 'reading_date', 'notes']

    def clean(self):
        cleaned_data = super().clean()
        if self.errors:
            return cleaned_data
        result = validate_meter_reading(
            reading=cleaned_data['reading'],
            reading_date=cleaned_data['reading_date'],
            exclude_id=self.instance.pk,
        )
        if not result.valid:
            raise forms.ValidationError(result.error)
        return cleaned_data


@admin.register(MeterReading)
class MeterReadingAdmin(admin.ModelAdmin):
    """Edits and deletes go through the meter reading services."""

    form = MeterReadingAdminForm
    list_display = ['reading_date', 'reading', 'user', 'created_at']
    list_filter = ['reading_date']
    search_fields = ['user__email', 'user__name', 'notes']
    date_hierarchy = 'reading_date'
    readonly_fields = ['user', 'created_at', 'updated_at']
    ordering = ['-reading_date']

    def has_add_permission(self, request):
        return False

    def save_model(self, request, obj, form, change):
        update_meter_reading(
            actor=Actor.from_user(request.user),
            reading_id=obj.pk,
            reading=form.cleaned_data['reading'],
            reading_date=form.cleaned_data['reading_date'],
            notes=form.cleaned_data['notes'],
        )

    def delete_model(self, request, obj):
        delete_meter_reading(actor=Actor.from_user(request.user), reading_id=obj.pk)

    def delete_queryset(self, request, queryset):
        actor = Actor.from_user(request.user)
        for meter_reading in queryset:
            delete_meter_reading(actor=actor, reading_id=meter_reading.pk)
