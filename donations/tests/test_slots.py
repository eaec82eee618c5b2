import threading
from datetime import time, timedelta

import pytest
from django.db import connection

from donations import slots
from donations.exceptions import (
    CapacityExceeded, DuplicateRegistration, EligibilityBlocked, InvalidTransition,
    NotPermitted, ValidationError,
)
from donations.models import Camp, Donor, Registration

from .conftest import at


@pytest.mark.django_db
class TestRegistration:

    def test_register_takes_a_seat(self, make_camp, donor):
        camp = make_camp(capacity=2)

        registration = slots.register_for_camp(camp.pk, donor.pk, donor.user)

        camp.refresh_from_db()
        assert registration.status == Registration.ACTIVE
        assert camp.registration_count == 1

    def test_full_camp_rejects(self, make_camp, make_donor, staff):
        camp = make_camp(capacity=1)
        slots.register_for_camp(camp.pk, make_donor('a').pk, staff)

        with pytest.raises(CapacityExceeded):
            slots.register_for_camp(camp.pk, make_donor('b').pk, staff)

        camp.refresh_from_db()
        assert camp.registration_count == 1
        assert camp.registrations.count() == 1

    def test_unbounded_camp(self, make_camp, make_donor, staff):
        camp = make_camp(capacity=None)
        for i in range(5):
            slots.register_for_camp(camp.pk, make_donor(f'd{i}').pk, staff)

        camp.refresh_from_db()
        assert camp.registration_count == 5
        assert not camp.is_full

    def test_duplicate_registration(self, make_camp, donor):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)

        with pytest.raises(DuplicateRegistration):
            slots.register_for_camp(camp.pk, donor.pk, donor.user)

        camp.refresh_from_db()
        assert camp.registration_count == 1

    def test_cancelled_registration_frees_the_seat(self, make_camp, donor, make_donor, staff):
        camp = make_camp(capacity=1)
        slots.register_for_camp(camp.pk, donor.pk, donor.user)
        slots.cancel_registration(camp.pk, donor.pk, donor.user)

        slots.register_for_camp(camp.pk, make_donor('bob').pk, staff)

        camp.refresh_from_db()
        assert camp.registration_count == 1
        assert list(camp.registrations.values_list('status', flat=True)) == [
            Registration.CANCELLED, Registration.ACTIVE,
        ]

    def test_donor_can_register_again_after_cancelling(self, make_camp, donor):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)
        slots.cancel_registration(camp.pk, donor.pk, donor.user)

        again = slots.register_for_camp(camp.pk, donor.pk, donor.user)

        assert again.status == Registration.ACTIVE

    def test_ended_camp_rejects(self, make_camp, donor, today):
        camp = make_camp(day=today - timedelta(days=1))

        with pytest.raises(ValidationError):
            slots.register_for_camp(camp.pk, donor.pk, donor.user)

    def test_ineligible_donor_rejected(self, make_camp, donor):
        Donor.objects.filter(pk=donor.pk).update(safety_status=Donor.POSITIVE, safety_reason='HIV reactive')
        camp = make_camp()

        with pytest.raises(EligibilityBlocked):
            slots.register_for_camp(camp.pk, donor.pk, donor.user)

        camp.refresh_from_db()
        assert camp.registration_count == 0

    def test_cannot_register_someone_else(self, make_camp, donor, make_donor):
        other = make_donor('mallory')

        with pytest.raises(NotPermitted):
            slots.register_for_camp(make_camp().pk, donor.pk, other.user)


@pytest.mark.django_db
class TestCheckIn:

    def test_check_in(self, make_camp, donor, staff):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)

        registration = slots.check_in(camp.pk, donor.pk, staff)

        assert registration.checked_in
        assert registration.checked_in_at is not None

    def test_second_check_in_rejected(self, make_camp, donor, staff):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)
        slots.check_in(camp.pk, donor.pk, staff)

        with pytest.raises(InvalidTransition):
            slots.check_in(camp.pk, donor.pk, staff)

    def test_unregistered_donor(self, make_camp, donor, staff):
        with pytest.raises(ValidationError):
            slots.check_in(make_camp().pk, donor.pk, staff)

    def test_donor_cannot_check_in(self, make_camp, donor):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)

        with pytest.raises(NotPermitted):
            slots.check_in(camp.pk, donor.pk, donor.user)


@pytest.mark.django_db
class TestSlotWindows:

    def test_camp_window_is_inclusive(self, make_camp, tomorrow, today):
        camp = make_camp(start=time(9), end=time(13))
        now = at(today, 0)

        slots.validate_camp_slot(camp, at(tomorrow, 9), now)
        slots.validate_camp_slot(camp, at(tomorrow, 13), now)

    @pytest.mark.parametrize('hour,minute', [(8, 59), (13, 1), (18, 0)])
    def test_camp_time_outside_window(self, make_camp, tomorrow, today, hour, minute):
        camp = make_camp(start=time(9), end=time(13))

        with pytest.raises(ValidationError):
            slots.validate_camp_slot(camp, at(tomorrow, hour, minute), at(today, 0))

    def test_camp_wrong_day(self, make_camp, tomorrow, today):
        camp = make_camp()

        with pytest.raises(ValidationError):
            slots.validate_camp_slot(camp, at(tomorrow + timedelta(days=1), 10), at(today, 0))

    def test_hospital_slot_must_be_in_future(self, today):
        with pytest.raises(ValidationError):
            slots.validate_hospital_slot(at(today, 8), now=at(today, 9))


@pytest.mark.django_db
class TestCampAdmin:

    def test_create_camp_validates_window(self, staff, tomorrow):
        with pytest.raises(ValidationError):
            slots.create_camp(staff, name='Backwards', date=tomorrow, start_time=time(13), end_time=time(9))

    def test_create_camp_requires_staff(self, donor, tomorrow):
        with pytest.raises(NotPermitted):
            slots.create_camp(donor.user, name='Kandy Drive', date=tomorrow, start_time=time(10), end_time=time(14))

    def test_camp_status(self, staff, tomorrow):
        camp = slots.create_camp(staff, name='Kandy Drive', date=tomorrow,
                                 start_time=time(10, 30), end_time=time(14, 30))

        assert camp.status_at(at(tomorrow, 9)) == Camp.UPCOMING
        assert camp.status_at(at(tomorrow, 12)) == Camp.ONGOING
        assert camp.status_at(at(tomorrow, 15)) == Camp.ENDED

    def test_camp_with_registrations_cannot_be_deleted(self, make_camp, donor, staff):
        camp = make_camp()
        slots.register_for_camp(camp.pk, donor.pk, donor.user)

        with pytest.raises(InvalidTransition):
            slots.delete_camp(camp.pk, staff)
        assert Camp.objects.filter(pk=camp.pk).exists()


@pytest.mark.django_db(transaction=True)
def test_concurrent_registrations_never_overbook(make_camp, make_donor):
    capacity, attempts = 3, 8
    camp = make_camp(capacity=capacity)
    donor_ids = [make_donor(f'rush{i}').pk for i in range(attempts)]
    barrier = threading.Barrier(attempts)
    outcomes = []

    def attempt(donor_id):
        try:
            barrier.wait()
            slots.register_for_camp(camp.pk, donor_id, None)
            outcomes.append('ok')
        except CapacityExceeded:
            outcomes.append('full')
        finally:
            connection.close()

    threads = [threading.Thread(target=attempt, args=(pk,)) for pk in donor_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    camp.refresh_from_db()
    assert outcomes.count('ok') == capacity
    assert outcomes.count('full') == attempts - capacity
    assert camp.registration_count == capacity
    assert camp.registrations.filter(status=Registration.ACTIVE).count() == capacity
