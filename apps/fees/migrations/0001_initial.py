from decimal import Decimal
import django.core.validators
import django.db.models.deletion
import uuid
from django.db import migrations, models


def base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(db_index=True, verbose_name='Created At')),
        ('updated_at', models.DateTimeField(db_index=True, verbose_name='Updated At')),
        ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of the actor who created this record', max_length=64, null=True, verbose_name='Created By ID')),
        ('updated_by_id', models.CharField(blank=True, help_text='ID of the actor who last updated this record', max_length=64, null=True, verbose_name='Updated By ID')),
        ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
        ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
        ('change_reason', models.CharField(blank=True, max_length=255, null=True, verbose_name='Change Reason')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('applications', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='FeeLineItem',
            fields=base_fields() + [
                ('fee_head_code', models.CharField(db_index=True, max_length=100, verbose_name='Fee Head Code')),
                ('description', models.CharField(blank=True, max_length=255, verbose_name='Description')),
                ('base_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True, verbose_name='Base Amount')),
                ('calculation_inputs', models.JSONField(blank=True, default=dict)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='Amount')),
                ('waiver_adjustment', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14, verbose_name='Waiver Adjustment')),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('status', models.CharField(choices=[('ASSESSED', 'Assessed'), ('DEMANDED', 'Demanded'), ('PAID', 'Paid'), ('WAIVED', 'Waived')], db_index=True, default='ASSESSED', max_length=10, verbose_name='Status')),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_line_items', to='applications.application', verbose_name='Application')),
            ],
            options={
                'verbose_name': 'Fee Line Item',
                'verbose_name_plural': 'Fee Line Items',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['application', 'status'], name='feeline_app_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='FeeDemand',
            fields=base_fields() + [
                ('demand_number', models.CharField(max_length=50, unique=True, verbose_name='Demand Number')),
                ('total_amount', models.DecimalField(decimal_places=2, max_digits=14, verbose_name='Total Amount')),
                ('paid_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14, verbose_name='Paid Amount')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PARTIALLY_PAID', 'Partially Paid'), ('PAID', 'Paid'), ('WAIVED', 'Waived'), ('CANCELLED', 'Cancelled')], db_index=True, default='PENDING', max_length=15, verbose_name='Status')),
                ('due_date', models.DateField(blank=True, null=True, verbose_name='Due Date')),
                ('paid_at', models.DateTimeField(blank=True, null=True, verbose_name='Paid At')),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='fee_demands', to='applications.application', verbose_name='Application')),
            ],
            options={
                'verbose_name': 'Fee Demand',
                'verbose_name_plural': 'Fee Demands',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['application', 'status'], name='feedemand_app_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='FeeDemandLine',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('demand', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='demand_lines', to='fees.feedemand')),
                ('line_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='demand_lines', to='fees.feelineitem')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('demand', 'line_item'), name='uniq_demand_line_item')],
            },
        ),
        migrations.AddField(
            model_name='feedemand',
            name='line_items',
            field=models.ManyToManyField(related_name='demands', through='fees.FeeDemandLine', to='fees.feelineitem'),
        ),
        migrations.CreateModel(
            name='Payment',
            fields=base_fields() + [
                ('mode', models.CharField(choices=[('GATEWAY', 'Payment Gateway'), ('UPI', 'UPI'), ('CARD', 'Card'), ('NETBANKING', 'Net Banking'), ('CHALLAN', 'Bank Challan'), ('NEFT', 'NEFT/RTGS'), ('COUNTER', 'Counter')], max_length=12, verbose_name='Mode')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('status', models.CharField(choices=[('INITIATED', 'Initiated'), ('SUCCESS', 'Success'), ('FAILED', 'Failed'), ('VERIFIED', 'Verified')], db_index=True, max_length=10, verbose_name='Payment Status')),
                ('gateway_order_id', models.CharField(blank=True, max_length=100, null=True, unique=True, verbose_name='Gateway Order ID')),
                ('gateway_payment_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Gateway Payment ID')),
                ('gateway_signature', models.CharField(blank=True, max_length=255, null=True, verbose_name='Gateway Signature')),
                ('provider_name', models.CharField(blank=True, max_length=50, null=True, verbose_name='Provider')),
                ('provider_transaction_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Provider Transaction ID')),
                ('failure_reason', models.CharField(blank=True, max_length=255, null=True, verbose_name='Failure Reason')),
                ('instrument_number', models.CharField(blank=True, max_length=100, null=True, verbose_name='Instrument Number')),
                ('instrument_bank', models.CharField(blank=True, max_length=100, null=True, verbose_name='Instrument Bank')),
                ('instrument_date', models.DateField(blank=True, null=True, verbose_name='Instrument Date')),
                ('receipt_number', models.CharField(blank=True, max_length=50, null=True, unique=True, verbose_name='Receipt Number')),
                ('receipt_date', models.DateField(blank=True, null=True, verbose_name='Receipt Date')),
                ('verified_by_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Verified By ID')),
                ('verified_at', models.DateTimeField(blank=True, null=True, verbose_name='Verified At')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completed At')),
                ('reconciliation_status', models.CharField(choices=[('PENDING', 'Pending'), ('RECONCILED', 'Reconciled'), ('MISMATCH', 'Mismatch'), ('MANUAL_REVIEW', 'Manual Review')], default='PENDING', max_length=15, verbose_name='Reconciliation Status')),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='applications.application', verbose_name='Application')),
                ('demand', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='payments', to='fees.feedemand', verbose_name='Demand')),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['application', 'created_at'], name='payment_app_created_idx'),
                    models.Index(fields=['demand', 'status'], name='payment_demand_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RefundRequest',
            fields=base_fields() + [
                ('refund_number', models.CharField(max_length=50, unique=True, verbose_name='Refund Number')),
                ('reason', models.TextField(verbose_name='Reason')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=14, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))], verbose_name='Amount')),
                ('bank_details', models.JSONField(blank=True, default=dict, verbose_name='Bank Details')),
                ('status', models.CharField(choices=[('REQUESTED', 'Requested'), ('APPROVED', 'Approved'), ('REJECTED', 'Rejected'), ('PROCESSED', 'Processed')], db_index=True, default='REQUESTED', max_length=10, verbose_name='Status')),
                ('requested_by_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Requested By ID')),
                ('decided_by_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Decided By ID')),
                ('decided_at', models.DateTimeField(blank=True, null=True, verbose_name='Decided At')),
                ('processed_by_id', models.CharField(blank=True, max_length=64, null=True, verbose_name='Processed By ID')),
                ('processed_at', models.DateTimeField(blank=True, null=True, verbose_name='Processed At')),
                ('application', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='refund_requests', to='applications.application', verbose_name='Application')),
                ('payment', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='refund_requests', to='fees.payment', verbose_name='Payment')),
            ],
            options={
                'verbose_name': 'Refund Request',
                'verbose_name_plural': 'Refund Requests',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['payment', 'status'], name='refund_payment_status_idx')],
            },
        ),
    ]
