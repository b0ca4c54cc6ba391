import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('properties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ServiceVersion',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of the actor who created this record', max_length=64, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, help_text='ID of the actor who last updated this record', max_length=64, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
                ('change_reason', models.CharField(blank=True, max_length=255, null=True, verbose_name='Change Reason')),
                ('service_key', models.CharField(db_index=True, max_length=100)),
                ('version', models.CharField(max_length=20)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('retired', 'Retired')], db_index=True, default='draft', max_length=20)),
                ('effective_from', models.DateTimeField(blank=True, null=True)),
                ('config', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'ordering': ['service_key', '-effective_from'],
                'indexes': [models.Index(fields=['service_key', 'status', 'effective_from'], name='svcver_key_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('service_key', 'version'), name='uniq_service_version')],
            },
        ),
        migrations.CreateModel(
            name='Application',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of the actor who created this record', max_length=64, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, help_text='ID of the actor who last updated this record', max_length=64, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
                ('change_reason', models.CharField(blank=True, max_length=255, null=True, verbose_name='Change Reason')),
                ('arn', models.CharField(max_length=64, unique=True, verbose_name='ARN')),
                ('service_key', models.CharField(db_index=True, max_length=100)),
                ('authority_id', models.CharField(db_index=True, max_length=50)),
                ('data', models.JSONField(blank=True, default=dict)),
                ('linked_property', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='applications', to='properties.property')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
