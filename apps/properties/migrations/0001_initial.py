import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Property',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(db_index=True, verbose_name='Created At')),
                ('updated_at', models.DateTimeField(db_index=True, verbose_name='Updated At')),
                ('created_by_id', models.CharField(blank=True, db_index=True, help_text='ID of the actor who created this record', max_length=64, null=True, verbose_name='Created By ID')),
                ('updated_by_id', models.CharField(blank=True, help_text='ID of the actor who last updated this record', max_length=64, null=True, verbose_name='Updated By ID')),
                ('created_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Created From IP')),
                ('updated_from_ip', models.GenericIPAddressField(blank=True, null=True, verbose_name='Updated From IP')),
                ('change_reason', models.CharField(blank=True, max_length=255, null=True, verbose_name='Change Reason')),
                ('authority_id', models.CharField(db_index=True, max_length=50)),
                ('upn', models.CharField(blank=True, max_length=64, null=True, verbose_name='Unique Property Number')),
                ('property_number', models.CharField(blank=True, max_length=50, null=True)),
                ('scheme_name', models.CharField(blank=True, max_length=200, null=True)),
                ('usage_type', models.CharField(blank=True, choices=[('RESIDENTIAL', 'Residential'), ('COMMERCIAL', 'Commercial'), ('INDUSTRIAL', 'Industrial'), ('INSTITUTIONAL', 'Institutional'), ('MIXED', 'Mixed Use')], max_length=20, null=True)),
                ('property_type', models.CharField(blank=True, max_length=20, null=True)),
                ('allotment_date', models.DateField(blank=True, null=True)),
                ('allottee_name', models.CharField(blank=True, max_length=200, null=True)),
                ('area_sqyd', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('planning_controls', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'verbose_name_plural': 'Properties',
                'ordering': ['authority_id', 'upn'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('upn__isnull', False)), fields=('authority_id', 'upn'), name='uniq_property_authority_upn')],
            },
        ),
    ]
