# donations/models.py
from datetime import datetime

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import InvalidTransition

BLOOD_GROUPS = [
    ('A+', 'A+'), ('A-', 'A-'),
    ('B+', 'B+'), ('B-', 'B-'),
    ('O+', 'O+'), ('O-', 'O-'),
    ('AB+', 'AB+'), ('AB-', 'AB-'),
]

UNKNOWN_GROUP = 'UNKNOWN'
DONOR_BLOOD_GROUPS = BLOOD_GROUPS + [(UNKNOWN_GROUP, 'Unknown')]

SEX_CHOICES = [
    ('M', 'Male'),
    ('F', 'Female'),
]

WHOLE_BLOOD = 'WHOLE_BLOOD'
PLATELETS = 'PLATELETS'
PLASMA = 'PLASMA'

DONATION_TYPES = [
    (WHOLE_BLOOD, 'Whole blood'),
    (PLATELETS, 'Platelets'),
    (PLASMA, 'Plasma'),
]


class Donor(models.Model):
    CLEAR = 'CLEAR'
    POSITIVE = 'POSITIVE'
    SAFETY_STATUS = [
        (CLEAR, 'Clear'),
        (POSITIVE, 'Positive'),
    ]

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='donor_profile',
    )
    full_name = models.CharField(max_length=200, blank=True)
    blood_group = models.CharField(max_length=8, choices=DONOR_BLOOD_GROUPS, default=UNKNOWN_GROUP)
    sex = models.CharField(max_length=1, choices=SEX_CHOICES, blank=True)
    city = models.CharField(max_length=120, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    safety_status = models.CharField(max_length=10, choices=SAFETY_STATUS, default=CLEAR)
    safety_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['full_name', 'pk']

    def __str__(self):
        name = self.full_name or (self.user.get_username() if self.user_id else f"Donor #{self.pk}")
        return f"{name} ({self.blood_group})"

    def save(self, *args, **kwargs):
        # POSITIVE never reverts to CLEAR.
        update_fields = kwargs.get('update_fields')
        touches_status = update_fields is None or 'safety_status' in update_fields
        if self.pk and touches_status and self.safety_status == self.CLEAR:
            stored = Donor.objects.filter(pk=self.pk).values_list('safety_status', flat=True).first()
            if stored == self.POSITIVE:
                raise InvalidTransition(
                    "A donor deferred by a positive test cannot be cleared.", donor=self.pk,
                )
        super().save(*args, **kwargs)


class Hospital(models.Model):
    name = models.CharField(max_length=200)
    city = models.CharField(max_length=120, blank=True, null=True)
    address = models.TextField(blank=True)
    contact = models.CharField(max_length=50, blank=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.name} - {self.city or 'No city'}"


class Camp(models.Model):
    UPCOMING = 'UPCOMING'
    ONGOING = 'ONGOING'
    ENDED = 'ENDED'

    name = models.CharField(max_length=200)
    location = models.CharField(max_length=200, blank=True)
    district = models.CharField(max_length=120, blank=True)
    nearest_hospital = models.ForeignKey(
        Hospital, on_delete=models.SET_NULL, null=True, blank=True, related_name='camps',
    )
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    capacity = models.PositiveIntegerField(null=True, blank=True)
    registration_count = models.PositiveIntegerField(default=0, editable=False)
    lat = models.FloatField(null=True, blank=True)
    lng = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['date', 'start_time', 'pk']
        constraints = [
            models.CheckConstraint(
                condition=Q(end_time__gt=F('start_time')),
                name='camp_ends_after_start',
            ),
            models.CheckConstraint(
                condition=Q(capacity__isnull=True) | Q(registration_count__lte=F('capacity')),
                name='camp_registrations_within_capacity',
            ),
        ]

    def __str__(self):
        return f"{self.name} on {self.date}"

    @property
    def starts_at(self):
        return timezone.make_aware(datetime.combine(self.date, self.start_time))

    @property
    def ends_at(self):
        return timezone.make_aware(datetime.combine(self.date, self.end_time))

    def status_at(self, now=None):
        now = now or timezone.now()
        if now < self.starts_at:
            return self.UPCOMING
        if now > self.ends_at:
            return self.ENDED
        return self.ONGOING

    @property
    def is_full(self):
        return self.capacity is not None and self.registration_count >= self.capacity


class Appointment(models.Model):
    SCHEDULED = 'Scheduled'
    APPROVED = 'Approved'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'
    STATUS = [
        (SCHEDULED, 'Scheduled'),
        (APPROVED, 'Approved'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    HOSPITAL = 'HOSPITAL'
    CAMP = 'CAMP'
    CENTER_TYPES = [
        (HOSPITAL, 'Hospital'),
        (CAMP, 'Camp'),
    ]

    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='appointments')
    center_type = models.CharField(max_length=10, choices=CENTER_TYPES)
    hospital = models.ForeignKey(
        Hospital, on_delete=models.PROTECT, null=True, blank=True, related_name='appointments',
    )
    camp = models.ForeignKey(
        Camp, on_delete=models.PROTECT, null=True, blank=True, related_name='appointments',
    )
    center_name = models.CharField(max_length=200, blank=True)
    scheduled_at = models.DateTimeField()
    donation_type = models.CharField(max_length=16, choices=DONATION_TYPES, default=WHOLE_BLOOD)
    status = models.CharField(max_length=12, choices=STATUS, default=SCHEDULED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-scheduled_at', '-pk']
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(center_type='HOSPITAL', hospital__isnull=False, camp__isnull=True)
                    | Q(center_type='CAMP', camp__isnull=False, hospital__isnull=True)
                ),
                name='appointment_has_one_center',
            ),
        ]

    def __str__(self):
        return f"{self.donor} at {self.center_name} on {self.scheduled_at:%Y-%m-%d %H:%M} - {self.status}"


class Registration(models.Model):
    ACTIVE = 'ACTIVE'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'
    STATUS = [
        (ACTIVE, 'Active'),
        (COMPLETED, 'Completed'),
        (CANCELLED, 'Cancelled'),
    ]

    camp = models.ForeignKey(Camp, on_delete=models.CASCADE, related_name='registrations')
    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='camp_registrations')
    appointment = models.OneToOneField(
        Appointment, on_delete=models.SET_NULL, null=True, blank=True, related_name='registration',
    )
    status = models.CharField(max_length=10, choices=STATUS, default=ACTIVE)
    checked_in = models.BooleanField(default=False)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['created_at', 'pk']
        constraints = [
            models.UniqueConstraint(
                fields=['camp', 'donor'],
                condition=Q(status='ACTIVE'),
                name='one_active_registration_per_donor',
            ),
        ]

    def __str__(self):
        return f"{self.donor} @ {self.camp.name} ({self.status})"


class DonationHistory(models.Model):
    """
    One row per completed donation. donated_on is the appointment's date, set
    explicitly so history can be back-filled.
    """
    donor = models.ForeignKey(Donor, on_delete=models.CASCADE, related_name='donation_history')
    appointment = models.OneToOneField(
        Appointment, on_delete=models.SET_NULL, null=True, blank=True, related_name='donation',
    )
    blood_group = models.CharField(max_length=8, choices=DONOR_BLOOD_GROUPS)
    donation_type = models.CharField(max_length=16, choices=DONATION_TYPES, default=WHOLE_BLOOD)
    units = models.PositiveIntegerField(default=1)
    donated_on = models.DateField()

    class Meta:
        ordering = ['-donated_on', '-pk']
        verbose_name_plural = 'donation history'

    def __str__(self):
        return f"{self.donor} gave {self.get_donation_type_display().lower()} on {self.donated_on}"


class EmergencyRequest(models.Model):
    OPEN = 'OPEN'
    PARTIAL = 'PARTIAL'
    FULFILLED = 'FULFILLED'
    STATUS = [
        (OPEN, 'Open'),
        (PARTIAL, 'Partially fulfilled'),
        (FULFILLED, 'Fulfilled'),
    ]

    URGENCY = [
        ('CRITICAL', 'Critical'),
        ('HIGH', 'High'),
        ('NORMAL', 'Normal'),
    ]

    hospital = models.CharField(max_length=160)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUPS)
    urgency = models.CharField(max_length=10, choices=URGENCY, default='CRITICAL')
    units_requested = models.PositiveIntegerField()
    units_fulfilled = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=10, choices=STATUS, default=OPEN)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-pk']
        constraints = [
            models.CheckConstraint(
                condition=Q(units_requested__gt=0),
                name='emergency_request_positive_units',
            ),
            models.CheckConstraint(
                condition=Q(units_fulfilled__lte=F('units_requested')),
                name='emergency_request_not_overfulfilled',
            ),
        ]

    def __str__(self):
        return f"{self.hospital} needs {self.units_requested} units ({self.blood_group}) - {self.status}"

    @property
    def units_remaining(self):
        return self.units_requested - self.units_fulfilled

    @staticmethod
    def status_for(fulfilled, requested):
        if fulfilled == 0:
            return EmergencyRequest.OPEN
        if fulfilled < requested:
            return EmergencyRequest.PARTIAL
        return EmergencyRequest.FULFILLED


class BloodUnit(models.Model):
    PENDING = 'PENDING'
    TESTED_SAFE = 'TESTED_SAFE'
    TESTED_POSITIVE = 'TESTED_POSITIVE'
    TEST_STATUS = [
        (PENDING, 'Pending'),
        (TESTED_SAFE, 'Tested safe'),
        (TESTED_POSITIVE, 'Tested positive'),
    ]

    FLAG_PENDING = 'PENDING'
    SAFE = 'SAFE'
    BIOHAZARD = 'BIO-HAZARD'
    SAFETY_FLAGS = [
        (FLAG_PENDING, 'Pending'),
        (SAFE, 'Safe'),
        (BIOHAZARD, 'Bio-hazard'),
    ]

    UNTESTED = 'UNTESTED'
    AVAILABLE = 'AVAILABLE'
    DISCARD = 'DISCARD'
    DISPATCHED = 'DISPATCHED'
    STATUS = [
        (UNTESTED, 'Untested'),
        (AVAILABLE, 'Available'),
        (DISCARD, 'Discard'),
        (DISPATCHED, 'Dispatched'),
    ]

    blood_group = models.CharField(max_length=8, choices=DONOR_BLOOD_GROUPS)
    donor = models.ForeignKey(
        Donor, on_delete=models.SET_NULL, null=True, blank=True, related_name='blood_units',
    )
    source_appointment = models.OneToOneField(
        Appointment, on_delete=models.SET_NULL, null=True, blank=True, related_name='blood_unit',
    )
    collected_at = models.DateTimeField(default=timezone.now)
    test_status = models.CharField(max_length=16, choices=TEST_STATUS, default=PENDING)
    safety_flag = models.CharField(max_length=12, choices=SAFETY_FLAGS, default=FLAG_PENDING)
    status = models.CharField(max_length=12, choices=STATUS, default=UNTESTED)
    quantity = models.PositiveIntegerField(default=1)
    expiry_date = models.DateField()
    hiv = models.BooleanField(default=False)
    hepatitis = models.BooleanField(default=False)
    malaria = models.BooleanField(default=False)
    test_reason = models.TextField(blank=True)
    tested_at = models.DateTimeField(null=True, blank=True)
    tested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='tested_units',
    )
    dispatched_to = models.ForeignKey(
        EmergencyRequest, on_delete=models.SET_NULL, null=True, blank=True, related_name='units',
    )
    dispatched_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['expiry_date', 'collected_at', 'pk']

    def __str__(self):
        return f"{self.blood_group} x{self.quantity} exp {self.expiry_date} - {self.status}"
