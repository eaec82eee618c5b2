import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

BLOOD_GROUPS = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]
DONOR_BLOOD_GROUPS = BLOOD_GROUPS + [('UNKNOWN', 'Unknown')]
DONATION_TYPES = [('WHOLE_BLOOD', 'Whole blood'), ('PLATELETS', 'Platelets'), ('PLASMA', 'Plasma')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Donor',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(blank=True, max_length=200)),
                ('blood_group', models.CharField(choices=DONOR_BLOOD_GROUPS, default='UNKNOWN', max_length=8)),
                ('sex', models.CharField(blank=True, choices=[('M', 'Male'), ('F', 'Female')], max_length=1)),
                ('city', models.CharField(blank=True, max_length=120)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('safety_status', models.CharField(choices=[('CLEAR', 'Clear'), ('POSITIVE', 'Positive')], default='CLEAR', max_length=10)),
                ('safety_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='donor_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['full_name', 'pk'],
            },
        ),
        migrations.CreateModel(
            name='Hospital',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('city', models.CharField(blank=True, max_length=120, null=True)),
                ('address', models.TextField(blank=True)),
                ('contact', models.CharField(blank=True, max_length=50)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Camp',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('location', models.CharField(blank=True, max_length=200)),
                ('district', models.CharField(blank=True, max_length=120)),
                ('date', models.DateField()),
                ('start_time', models.TimeField()),
                ('end_time', models.TimeField()),
                ('capacity', models.PositiveIntegerField(blank=True, null=True)),
                ('registration_count', models.PositiveIntegerField(default=0, editable=False)),
                ('lat', models.FloatField(blank=True, null=True)),
                ('lng', models.FloatField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('nearest_hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='camps', to='donations.hospital')),
            ],
            options={
                'ordering': ['date', 'start_time', 'pk'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('end_time__gt', models.F('start_time'))), name='camp_ends_after_start'),
                    models.CheckConstraint(condition=models.Q(('capacity__isnull', True), ('registration_count__lte', models.F('capacity')), _connector='OR'), name='camp_registrations_within_capacity'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Appointment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('center_type', models.CharField(choices=[('HOSPITAL', 'Hospital'), ('CAMP', 'Camp')], max_length=10)),
                ('center_name', models.CharField(blank=True, max_length=200)),
                ('scheduled_at', models.DateTimeField()),
                ('donation_type', models.CharField(choices=DONATION_TYPES, default='WHOLE_BLOOD', max_length=16)),
                ('status', models.CharField(choices=[('Scheduled', 'Scheduled'), ('Approved', 'Approved'), ('Completed', 'Completed'), ('Cancelled', 'Cancelled')], default='Scheduled', max_length=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='appointments', to='donations.donor')),
                ('hospital', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='donations.hospital')),
                ('camp', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='appointments', to='donations.camp')),
            ],
            options={
                'ordering': ['-scheduled_at', '-pk'],
                'constraints': [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('camp__isnull', True), ('center_type', 'HOSPITAL'), ('hospital__isnull', False)),
                            models.Q(('camp__isnull', False), ('center_type', 'CAMP'), ('hospital__isnull', True)),
                            _connector='OR',
                        ),
                        name='appointment_has_one_center',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Registration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('ACTIVE', 'Active'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='ACTIVE', max_length=10)),
                ('checked_in', models.BooleanField(default=False)),
                ('checked_in_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('camp', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='registrations', to='donations.camp')),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='camp_registrations', to='donations.donor')),
                ('appointment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registration', to='donations.appointment')),
            ],
            options={
                'ordering': ['created_at', 'pk'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('status', 'ACTIVE')), fields=('camp', 'donor'), name='one_active_registration_per_donor'),
                ],
            },
        ),
        migrations.CreateModel(
            name='DonationHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('blood_group', models.CharField(choices=DONOR_BLOOD_GROUPS, max_length=8)),
                ('donation_type', models.CharField(choices=DONATION_TYPES, default='WHOLE_BLOOD', max_length=16)),
                ('units', models.PositiveIntegerField(default=1)),
                ('donated_on', models.DateField()),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donation_history', to='donations.donor')),
                ('appointment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='donation', to='donations.appointment')),
            ],
            options={
                'ordering': ['-donated_on', '-pk'],
                'verbose_name_plural': 'donation history',
            },
        ),
        migrations.CreateModel(
            name='EmergencyRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('hospital', models.CharField(max_length=160)),
                ('blood_group', models.CharField(choices=BLOOD_GROUPS, max_length=3)),
                ('urgency', models.CharField(choices=[('CRITICAL', 'Critical'), ('HIGH', 'High'), ('NORMAL', 'Normal')], default='CRITICAL', max_length=10)),
                ('units_requested', models.PositiveIntegerField()),
                ('units_fulfilled', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('OPEN', 'Open'), ('PARTIAL', 'Partially fulfilled'), ('FULFILLED', 'Fulfilled')], default='OPEN', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-created_at', '-pk'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('units_requested__gt', 0)), name='emergency_request_positive_units'),
                    models.CheckConstraint(condition=models.Q(('units_fulfilled__lte', models.F('units_requested'))), name='emergency_request_not_overfulfilled'),
                ],
            },
        ),
        migrations.CreateModel(
            name='BloodUnit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('blood_group', models.CharField(choices=DONOR_BLOOD_GROUPS, max_length=8)),
                ('collected_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('test_status', models.CharField(choices=[('PENDING', 'Pending'), ('TESTED_SAFE', 'Tested safe'), ('TESTED_POSITIVE', 'Tested positive')], default='PENDING', max_length=16)),
                ('safety_flag', models.CharField(choices=[('PENDING', 'Pending'), ('SAFE', 'Safe'), ('BIO-HAZARD', 'Bio-hazard')], default='PENDING', max_length=12)),
                ('status', models.CharField(choices=[('UNTESTED', 'Untested'), ('AVAILABLE', 'Available'), ('DISCARD', 'Discard'), ('DISPATCHED', 'Dispatched')], default='UNTESTED', max_length=12)),
                ('quantity', models.PositiveIntegerField(default=1)),
                ('expiry_date', models.DateField()),
                ('hiv', models.BooleanField(default=False)),
                ('hepatitis', models.BooleanField(default=False)),
                ('malaria', models.BooleanField(default=False)),
                ('test_reason', models.TextField(blank=True)),
                ('tested_at', models.DateTimeField(blank=True, null=True)),
                ('dispatched_at', models.DateTimeField(blank=True, null=True)),
                ('donor', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blood_units', to='donations.donor')),
                ('source_appointment', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blood_unit', to='donations.appointment')),
                ('tested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tested_units', to=settings.AUTH_USER_MODEL)),
                ('dispatched_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='units', to='donations.emergencyrequest')),
            ],
            options={
                'ordering': ['expiry_date', 'collected_at', 'pk'],
            },
        ),
    ]
