from django.core.validators import MinValueValidator
from django.db import models
import uuid


class MeterReading(models.Model):
    """A standalone reading of the shared electricity meter."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='meter_readings'
    )
    reading = models.FloatField(validators=[MinValueValidator(0)])
    reading_date = models.DateField()
    notes = models.TextField(blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'meter_readings'
        indexes = [
            models.Index(fields=['reading_date'], name='meter_reading_date_idx'),
            models.Index(fields=['user', 'reading_date'], name='meter_reading_user_idx'),
        ]
        ordering = ['-reading_date', '-created_at']

    def __str__(self):
        return f"{self.reading} kWh on {self.reading_date}"
