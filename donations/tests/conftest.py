from datetime import datetime, time, timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from donations.models import BloodUnit, Camp, Hospital


def at(day, hour, minute=0):
    return timezone.make_aware(datetime.combine(day, time(hour, minute)))


@pytest.fixture
def today():
    return timezone.localdate()


@pytest.fixture
def tomorrow(today):
    return today + timedelta(days=1)


@pytest.fixture
def staff(django_user_model):
    return django_user_model.objects.create_user(username='nurse', password='pw-123456', is_staff=True)


@pytest.fixture
def make_donor(django_user_model):
    """Donor users get their profile from the post_save signal."""
    def make(username, blood_group='O+', sex=''):
        user = django_user_model.objects.create_user(username=username, password='pw-123456')
        donor = user.donor_profile
        donor.blood_group = blood_group
        donor.sex = sex
        donor.save()
        return donor
    return make


@pytest.fixture
def donor(make_donor):
    return make_donor('alice')


@pytest.fixture
def hospital():
    return Hospital.objects.create(name='Colombo National Hospital', city='Colombo')


@pytest.fixture
def make_camp(tomorrow):
    def make(capacity=3, day=None, start=time(9), end=time(13), name='Colombo Camp'):
        return Camp.objects.create(
            name=name, location='Colombo City Centre', district='Colombo',
            date=day or tomorrow, start_time=start, end_time=end, capacity=capacity,
        )
    return make


@pytest.fixture
def make_unit(today):
    def make(blood_group='O+', quantity=1, expires_in=20, status=BloodUnit.AVAILABLE, **extra):
        tested = status != BloodUnit.UNTESTED
        return BloodUnit.objects.create(
            blood_group=blood_group,
            quantity=quantity,
            expiry_date=today + timedelta(days=expires_in),
            status=status,
            test_status=BloodUnit.TESTED_SAFE if tested else BloodUnit.PENDING,
            safety_flag=BloodUnit.SAFE if tested else BloodUnit.FLAG_PENDING,
            **extra,
        )
    return make


@pytest.fixture
def api():
    return APIClient()
