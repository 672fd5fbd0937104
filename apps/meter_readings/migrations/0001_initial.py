# Generated manually for the meter readings app

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='MeterReading',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('reading', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('reading_date', models.DateField()),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='meter_readings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'meter_readings',
                'ordering': ['-reading_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['reading_date'], name='meter_reading_date_idx'),
                    models.Index(fields=['user', 'reading_date'], name='meter_reading_user_idx'),
                ],
            },
        ),
    ]
