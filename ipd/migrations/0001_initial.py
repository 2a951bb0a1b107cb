import uuid
from decimal import Decimal

import django.core.serializers.json
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


ROOM_TYPES = [
    ('casualty', 'Casualty'),
    ('icu', 'ICU'),
    ('suit', 'Suite'),
    ('female', 'Female Ward'),
    ('delux', 'Delux'),
    ('jade', 'Jade'),
    ('citrine', 'Citrine'),
    ('male', 'Male Ward'),
    ('nicu', 'NICU'),
]

GENDERS = [('male', 'Male'), ('female', 'Female'), ('other', 'Other')]

PAYMENT_TYPES = [('cash', 'Cash'), ('online', 'Online'), ('card', 'Card')]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Bed',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('room_type', models.CharField(choices=ROOM_TYPES, db_index=True, max_length=30)),
                ('bed_number', models.CharField(max_length=20)),
                ('bed_type', models.CharField(blank=True, max_length=50)),
                ('status', models.CharField(choices=[('Available', 'Available'), ('Occupied', 'Occupied'), ('Maintenance', 'Maintenance'), ('Reserved', 'Reserved')], default='Available', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['room_type', 'bed_number'],
                'unique_together': {('room_type', 'bed_number')},
            },
        ),
        migrations.CreateModel(
            name='Doctor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('specialist', models.CharField(blank=True, max_length=100)),
                ('department', models.CharField(choices=[('OPD', 'OPD'), ('IPD', 'IPD'), ('Both', 'Both')], default='Both', max_length=10)),
                ('opd_charge', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('ipd_charges', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('uhid', models.CharField(max_length=32, unique=True)),
                ('name', models.CharField(max_length=100)),
                ('phone', models.CharField(max_length=20)),
                ('age', models.PositiveIntegerField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=GENDERS, max_length=10)),
                ('address', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True)),
                ('value', models.PositiveBigIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name='Admission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('admit_date_key', models.CharField(db_index=True, max_length=10)),
                ('name', models.CharField(max_length=100)),
                ('phone', models.CharField(max_length=20)),
                ('age', models.PositiveIntegerField(blank=True, null=True)),
                ('gender', models.CharField(blank=True, choices=GENDERS, max_length=10)),
                ('address', models.TextField(blank=True)),
                ('relative_name', models.CharField(blank=True, max_length=100)),
                ('relative_phone', models.CharField(blank=True, max_length=20)),
                ('relative_address', models.TextField(blank=True)),
                ('admission_date', models.DateField()),
                ('admission_time', models.CharField(blank=True, max_length=10)),
                ('admission_source', models.CharField(blank=True, choices=[('opd', 'OPD'), ('casualty', 'Casualty'), ('referral', 'Referral'), ('ipd', 'IPD')], max_length=20)),
                ('admission_type', models.CharField(blank=True, choices=[('general', 'General'), ('surgery', 'Surgery'), ('accident_emergency', 'Accident/Emergency'), ('day_observation', 'Day Observation')], max_length=30)),
                ('room_type', models.CharField(blank=True, choices=ROOM_TYPES, max_length=30)),
                ('refer_doctor', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('active', 'Active'), ('discharged', 'Discharged')], default='active', max_length=20)),
                ('discharge_date', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('last_modified_by', models.CharField(blank=True, max_length=150)),
                ('bed', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='admissions', to='ipd.bed')),
                ('doctor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='admissions', to='ipd.doctor')),
                ('patient', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='admissions', to='ipd.patient')),
            ],
            options={
                'ordering': ['-admission_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['admit_date_key', 'patient'], name='ipd_admission_datekey_idx'),
                    models.Index(fields=['bed', 'status'], name='ipd_admission_bed_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BillingRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('discount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_deposit', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('payment_mode', models.CharField(blank=True, choices=PAYMENT_TYPES, max_length=20)),
                ('version', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('admission', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='billing', to='ipd.admission')),
            ],
        ),
        migrations.CreateModel(
            name='ServiceCharge',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('service_name', models.CharField(max_length=200)),
                ('doctor_name', models.CharField(blank=True, max_length=100)),
                ('type', models.CharField(choices=[('service', 'Hospital Service'), ('doctorvisit', 'Consultant Charge')], default='service', max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('billing', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='services', to='ipd.billingrecord')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))])),
                ('payment_type', models.CharField(choices=PAYMENT_TYPES, max_length=20)),
                ('type', models.CharField(choices=[('advance', 'Advance'), ('refund', 'Refund')], default='advance', max_length=10)),
                ('amount_type', models.CharField(choices=[('advance', 'Advance'), ('deposit', 'Deposit'), ('settlement', 'Settlement')], default='advance', max_length=20)),
                ('date', models.DateTimeField(default=django.utils.timezone.now)),
                ('through', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('billing', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payments', to='ipd.billingrecord')),
            ],
            options={
                'ordering': ['-date'],
            },
        ),
        migrations.CreateModel(
            name='AdmissionChange',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('patient_uhid', models.CharField(max_length=32)),
                ('admit_date_key', models.CharField(max_length=10)),
                ('patient_name', models.CharField(blank=True, max_length=100)),
                ('change_type', models.CharField(choices=[('edit', 'Edit'), ('discharge', 'Discharge')], default='edit', max_length=20)),
                ('changes', models.JSONField(default=list, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ('outcome', models.CharField(choices=[('applied', 'Applied'), ('failed', 'Failed'), ('conflict', 'Conflict')], default='applied', max_length=20)),
                ('detail', models.TextField(blank=True)),
                ('edited_by', models.CharField(blank=True, max_length=150)),
                ('edited_at', models.DateTimeField(auto_now_add=True)),
                ('admission', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='changes', to='ipd.admission')),
            ],
            options={
                'ordering': ['-edited_at', '-id'],
            },
        ),
    ]
