from rest_framework import serializers
from .models import MeterReading
from apps.accounts.serializers import UserMinimalSerializer


# =============================================================================
# Input Serializers
# =============================================================================

class MeterReadingFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for meter reading filtering.

    Query Parameters:
        user (UUID): Filter by the member who took the reading
        date_from (date): Readings on or after this date
        date_to (date): Readings on or before this date
    """

    user = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, attrs):
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')
        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({
                'date_to': 'End date must be after start date'
            })
        return attrs


class MeterReadingCreateSerializer(serializers.Serializer):
    reading = serializers.FloatField(min_value=0)
    reading_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class MeterReadingUpdateSerializer(serializers.Serializer):
    reading = serializers.FloatField(min_value=0, required=False)
    reading_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class MeterReadingValidateSerializer(serializers.Serializer):
    reading = serializers.FloatField(min_value=0)
    reading_date = serializers.DateField()
    exclude_id = serializers.UUIDField(required=False, help_text="Reading being edited")


# =============================================================================
# Output Serializers
# =============================================================================

class MeterReadingSerializer(serializers.ModelSerializer):
    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = MeterReading
        fields = [
            'id',
            'user',
            'reading',
            'reading_date',
            'notes',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class ReadingSuggestionSerializer(serializers.Serializer):
    minimum = serializers.FloatField()
    suggestion = serializers.FloatField()
    context = serializers.CharField()


class MeterReadingValidationSerializer(serializers.Serializer):
    """Outcome of a chronology check, with a suggested value to enter."""

    valid = serializers.BooleanField()
    error = serializers.CharField(allow_blank=True)
    code = serializers.CharField(allow_blank=True)
    suggested_minimum = serializers.FloatField(allow_null=True)
    suggestion = ReadingSuggestionSerializer()
