"""
Capacity and time-window rules for hospital and camp bookings.

The camp seat counter is only ever changed by a single conditional UPDATE,
issued while the camp row is locked, so ``registration_count`` can never
pass ``capacity`` whatever the interleaving of concurrent registrations.
"""
import logging

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .eligibility import ensure_eligible
from .exceptions import (
    CapacityExceeded, DuplicateRegistration, InvalidTransition, ValidationError,
)
from .models import Camp, Donor, Registration
from .permissions import require_self_or_staff, require_staff

logger = logging.getLogger(__name__)


def validate_hospital_slot(scheduled_at, now=None):
    now = now or timezone.now()
    if scheduled_at <= now:
        raise ValidationError("Booking time must be in the future.")


def validate_camp_slot(camp, scheduled_at, now=None):
    validate_hospital_slot(scheduled_at, now)
    local = timezone.localtime(scheduled_at)
    if local.date() != camp.date:
        raise ValidationError(f"{camp.name} only runs on {camp.date}.", camp_date=camp.date)
    if not (camp.start_time <= local.time() <= camp.end_time):
        raise ValidationError(
            f"Selected time is outside the camp schedule "
            f"({camp.start_time:%H:%M}-{camp.end_time:%H:%M}).",
        )


def lock_camp(camp_id):
    return get_object_or_404(Camp.objects.select_for_update(), pk=camp_id)


def reserve_seat(camp, donor, appointment=None):
    """Take one seat at ``camp`` for ``donor``. Caller holds the camp lock."""
    if Registration.objects.filter(camp=camp, donor=donor, status=Registration.ACTIVE).exists():
        raise DuplicateRegistration(f"Donor is already registered for {camp.name}.")

    seat_free = Q(capacity__isnull=True) | Q(registration_count__lt=F('capacity'))
    claimed = (
        Camp.objects
        .filter(seat_free, pk=camp.pk)
        .update(registration_count=F('registration_count') + 1)
    )
    if not claimed:
        raise CapacityExceeded(f"{camp.name} is full.", capacity=camp.capacity)

    try:
        with transaction.atomic():
            registration = Registration.objects.create(camp=camp, donor=donor, appointment=appointment)
    except IntegrityError:
        raise DuplicateRegistration(f"Donor is already registered for {camp.name}.")

    camp.refresh_from_db(fields=['registration_count'])
    logger.info("Donor %s registered for camp %s (%s/%s)",
                donor.pk, camp.pk, camp.registration_count, camp.capacity or '-')
    return registration


def register_for_camp(camp_id, donor_id, user, now=None):
    now = now or timezone.now()
    with transaction.atomic():
        camp = lock_camp(camp_id)
        donor = get_object_or_404(Donor.objects.select_for_update(), pk=donor_id)
        require_self_or_staff(user, donor, 'register')

        if camp.status_at(now) == Camp.ENDED:
            raise ValidationError(f"{camp.name} has already ended.")
        ensure_eligible(donor, on=camp.date)
        return reserve_seat(camp, donor)


def release_registration(registration):
    """Cancel an active registration and give its seat back. Runs inside the caller's transaction."""
    if registration.status != Registration.ACTIVE:
        return registration
    Camp.objects.filter(pk=registration.camp_id, registration_count__gt=0).update(
        registration_count=F('registration_count') - 1,
    )
    registration.status = Registration.CANCELLED
    registration.save(update_fields=['status'])
    logger.info("Registration %s at camp %s released", registration.pk, registration.camp_id)
    return registration


def cancel_registration(camp_id, donor_id, user):
    with transaction.atomic():
        lock_camp(camp_id)
        registration = get_object_or_404(
            Registration.objects.select_for_update().select_related('donor', 'appointment'),
            camp_id=camp_id, donor_id=donor_id, status=Registration.ACTIVE,
        )
        require_self_or_staff(user, registration.donor, 'cancel a registration')
        if registration.appointment_id is not None:
            raise InvalidTransition("Registration belongs to an appointment; cancel the appointment instead.")
        return release_registration(registration)


def check_in(camp_id, donor_id, user, now=None):
    require_staff(user, 'check donors in')
    now = now or timezone.now()
    with transaction.atomic():
        registration = (
            Registration.objects
            .select_for_update()
            .filter(camp_id=camp_id, donor_id=donor_id, status=Registration.ACTIVE)
            .first()
        )
        if registration is None:
            raise ValidationError("Donor has no active registration for this camp.")
        if registration.checked_in:
            raise InvalidTransition("Donor is already checked in.")
        registration.checked_in = True
        registration.checked_in_at = now
        registration.save(update_fields=['checked_in', 'checked_in_at'])
    logger.info("Donor %s checked in at camp %s", donor_id, camp_id)
    return registration


def create_camp(user, **fields):
    require_staff(user, 'create camps')
    start, end = fields.get('start_time'), fields.get('end_time')
    if start is None or end is None or fields.get('date') is None:
        raise ValidationError("Camp date, start time and end time are required.")
    if end <= start:
        raise ValidationError("Camp end time must be after start time.")
    capacity = fields.get('capacity')
    if capacity is not None and capacity < 1:
        raise ValidationError("Capacity must be at least 1 when set.")
    camp = Camp.objects.create(**fields)
    logger.info("Camp %s created for %s", camp.pk, camp.date)
    return camp


def delete_camp(camp_id, user):
    require_staff(user, 'delete camps')
    with transaction.atomic():
        camp = lock_camp(camp_id)
        if camp.appointments.exists() or camp.registrations.filter(status=Registration.ACTIVE).exists():
            raise InvalidTransition(f"{camp.name} has bookings and cannot be deleted.")
        camp.delete()
    logger.info("Camp %s deleted", camp_id)
