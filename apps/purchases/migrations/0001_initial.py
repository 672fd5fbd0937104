# Generated manually for the token ledger purchases app

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
            name='TokenPurchase',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('total_tokens', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('total_payment', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('meter_reading', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('purchase_date', models.DateTimeField()),
                ('is_emergency', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='token_purchases', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'token_purchases',
                'ordering': ['-purchase_date', '-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['purchase_date'], name='token_purchase_date_idx'),
                    models.Index(fields=['created_by', 'purchase_date'], name='token_purchase_user_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='UserContribution',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('contribution_amount', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('meter_reading', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('tokens_consumed', models.FloatField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('purchase', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='contribution', to='purchases.tokenpurchase')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='contributions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'user_contributions',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='contribution_user_idx'),
                    models.Index(fields=['created_at'], name='contribution_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ReceiptData',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('token_number', models.CharField(blank=True, max_length=50)),
                ('account_number', models.CharField(blank=True, max_length=50)),
                ('kwh_purchased', models.FloatField(validators=[django.core.validators.MinValueValidator(0)])),
                ('energy_cost_zwg', models.FloatField(default=0)),
                ('debt_zwg', models.FloatField(default=0)),
                ('rea_zwg', models.FloatField(default=0)),
                ('vat_zwg', models.FloatField(default=0)),
                ('total_amount_zwg', models.FloatField(default=0)),
                ('tendered_zwg', models.FloatField(default=0)),
                ('transaction_datetime', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('purchase', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='receipt', to='purchases.tokenpurchase')),
            ],
            options={
                'db_table': 'receipt_data',
                'ordering': ['-transaction_datetime'],
            },
        ),
    ]
