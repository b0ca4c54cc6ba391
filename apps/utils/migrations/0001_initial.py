import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
    ]

    operations = [
        migrations.CreateModel(
            name='FinancialAuditLog',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('timestamp', models.DateTimeField(db_index=True)),
                ('action', models.CharField(choices=[('FEE_ASSESS', 'Fees Assessed'), ('DEMAND_CREATE', 'Demand Created'), ('DEMAND_WAIVE', 'Demand Waived'), ('DEMAND_CANCEL', 'Demand Cancelled'), ('PAYMENT_RECORD', 'Payment Recorded'), ('PAYMENT_VERIFY', 'Gateway Payment Verified'), ('PAYMENT_FAIL', 'Payment Failed'), ('PAYMENT_INTEGRITY_FAILURE', 'Payment Integrity Failure'), ('REFUND_REQUEST', 'Refund Requested'), ('REFUND_APPROVE', 'Refund Approved'), ('REFUND_REJECT', 'Refund Rejected'), ('REFUND_PROCESS', 'Refund Processed'), ('NDC_PAYMENT_POST', 'NDC Due Payment Posted')], db_index=True, max_length=30)),
                ('actor_id', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True, null=True)),
                ('request_path', models.CharField(blank=True, max_length=255, null=True)),
                ('object_id', models.CharField(blank=True, max_length=100, null=True)),
                ('object_description', models.CharField(blank=True, max_length=500, null=True)),
                ('amount_involved', models.DecimalField(blank=True, decimal_places=2, max_digits=15, null=True)),
                ('currency', models.CharField(blank=True, max_length=3, null=True)),
                ('application_arn', models.CharField(blank=True, db_index=True, max_length=64, null=True)),
                ('old_values', models.JSONField(blank=True, null=True)),
                ('new_values', models.JSONField(blank=True, null=True)),
                ('risk_level', models.CharField(choices=[('LOW', 'Low Risk'), ('MEDIUM', 'Medium Risk'), ('HIGH', 'High Risk'), ('CRITICAL', 'Critical Risk')], db_index=True, default='LOW', max_length=10)),
                ('additional_data', models.JSONField(blank=True, default=dict)),
                ('notes', models.TextField(blank=True, null=True)),
                ('content_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to='contenttypes.contenttype')),
            ],
            options={
                'verbose_name': 'Financial Audit Log',
                'verbose_name_plural': 'Financial Audit Logs',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['timestamp', 'action'], name='finaudit_ts_action_idx'),
                    models.Index(fields=['risk_level', 'timestamp'], name='finaudit_risk_ts_idx'),
                    models.Index(fields=['application_arn', 'timestamp'], name='finaudit_arn_ts_idx'),
                ],
            },
        ),
    ]
