import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('patients', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Prescription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('medication_name', models.CharField(db_index=True, max_length=200)),
                ('dosage', models.CharField(max_length=50)),
                ('dosage_unit', models.CharField(choices=[('mg', 'mg'), ('g', 'g'), ('ml', 'ml'), ('mcg', 'mcg'), ('units', 'units'), ('tablets', 'tablets'), ('capsules', 'capsules')], default='mg', max_length=20)),
                ('frequency', models.CharField(max_length=100)),
                ('route', models.CharField(choices=[('oral', 'Oral'), ('topical', 'Topical'), ('injection', 'Injection'), ('inhalation', 'Inhalation'), ('sublingual', 'Sublingual'), ('rectal', 'Rectal')], default='oral', max_length=20)),
                ('quantity', models.PositiveIntegerField(blank=True, null=True)),
                ('refills', models.PositiveSmallIntegerField(default=0)),
                ('duration_days', models.PositiveIntegerField(default=30)),
                ('start_date', models.DateField(db_index=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('indication', models.CharField(blank=True, default='', max_length=255)),
                ('instructions', models.TextField(blank=True, default='')),
                ('pharmacy_name', models.CharField(blank=True, default='', max_length=200)),
                ('pharmacy_phone', models.CharField(blank=True, default='', max_length=50)),
                ('monitoring_required', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('active', 'Active'), ('on_hold', 'On hold'), ('completed', 'Completed'), ('discontinued', 'Discontinued')], db_index=True, default='active', max_length=20)),
                ('status_reason', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('doctor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='prescriptions', to=settings.AUTH_USER_MODEL)),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='prescriptions', to='patients.patient')),
            ],
            options={
                'verbose_name': 'Prescription',
                'verbose_name_plural': 'Prescriptions',
                'db_table': 'prescriptions_prescription',
                'ordering': ['-start_date', '-id'],
            },
        ),
        migrations.CreateModel(
            name='RefillRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('refill_date', models.DateField(db_index=True)),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('cancelled', 'Cancelled')], default='completed', max_length=20)),
                ('method', models.CharField(choices=[('pharmacy', 'Pharmacy'), ('mail_order', 'Mail order'), ('in_clinic', 'In clinic')], default='pharmacy', max_length=20)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='recorded_refills', to=settings.AUTH_USER_MODEL)),
                ('prescription', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='refill_records', to='prescriptions.prescription')),
            ],
            options={
                'verbose_name': 'Refill record',
                'verbose_name_plural': 'Refill records',
                'db_table': 'prescriptions_refillrecord',
                'ordering': ['-refill_date', '-id'],
            },
        ),
    ]
