import logging
from datetime import timedelta

from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone

from . import conf
from .eligibility import ensure_eligible
from .exceptions import InvalidTransition, NotPermitted, ValidationError
from .models import (
    BLOOD_GROUPS, DONATION_TYPES, UNKNOWN_GROUP, WHOLE_BLOOD, Appointment, BloodUnit,
    DonationHistory, Donor, Hospital, Registration,
)
from .permissions import is_staff, require_self_or_staff
from .slots import lock_camp, release_registration, reserve_seat, validate_camp_slot, validate_hospital_slot

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Appointment.SCHEDULED: {Appointment.APPROVED, Appointment.CANCELLED},
    Appointment.APPROVED: {Appointment.COMPLETED, Appointment.CANCELLED},
    Appointment.COMPLETED: set(),
    Appointment.CANCELLED: set(),
}

STAFF_ONLY = {Appointment.APPROVED, Appointment.COMPLETED}


def book_appointment(donor_id, center_type, center_id, scheduled_at, user,
                     blood_group=None, donation_type=WHOLE_BLOOD, now=None):
    now = now or timezone.now()
    center_type = (center_type or Appointment.HOSPITAL).strip().upper()
    if center_type not in (Appointment.HOSPITAL, Appointment.CAMP):
        raise ValidationError(f"Unknown center type {center_type!r}.")
    if donation_type not in dict(DONATION_TYPES):
        raise ValidationError(f"Unknown donation type {donation_type!r}.")
    if scheduled_at is None or timezone.is_naive(scheduled_at):
        raise ValidationError("Booking time must include a timezone.")

    with transaction.atomic():
        # Camp lock first, then donor, in the same order as register_for_camp.
        camp = lock_camp(center_id) if center_type == Appointment.CAMP else None
        donor = get_object_or_404(Donor.objects.select_for_update(), pk=donor_id)
        require_self_or_staff(user, donor, 'book appointments')

        if blood_group and blood_group != UNKNOWN_GROUP and donor.blood_group == UNKNOWN_GROUP:
            donor.blood_group = blood_group
            donor.save(update_fields=['blood_group'])

        ensure_eligible(donor, on=timezone.localtime(scheduled_at).date())

        if camp is not None:
            validate_camp_slot(camp, scheduled_at, now)
            appointment = Appointment.objects.create(
                donor=donor, center_type=center_type, camp=camp, center_name=camp.name,
                scheduled_at=scheduled_at, donation_type=donation_type,
            )
            reserve_seat(camp, donor, appointment=appointment)
        else:
            hospital = get_object_or_404(Hospital, pk=center_id)
            validate_hospital_slot(scheduled_at, now)
            appointment = Appointment.objects.create(
                donor=donor, center_type=center_type, hospital=hospital, center_name=hospital.name,
                scheduled_at=scheduled_at, donation_type=donation_type,
            )

    logger.info("Appointment %s booked for donor %s at %s %s",
                appointment.pk, donor.pk, center_type.lower(), center_id)
    return appointment


def transition(appointment_id, new_status, user, now=None, blood_group=None):
    now = now or timezone.now()
    if new_status not in TRANSITIONS:
        raise ValidationError(f"Unknown appointment status {new_status!r}.")
    if blood_group is not None and blood_group not in dict(BLOOD_GROUPS):
        raise ValidationError(f"Unknown blood group {blood_group!r}.")

    with transaction.atomic():
        # Lock order is camp, donor, appointment, as in book_appointment.
        refs = get_object_or_404(Appointment.objects.values('camp_id', 'donor_id'), pk=appointment_id)
        if refs['camp_id'] is not None:
            lock_camp(refs['camp_id'])
        donor = Donor.objects.select_for_update().get(pk=refs['donor_id'])
        appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
        appointment.donor = donor

        current = appointment.status
        if new_status not in TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot move appointment from {current} to {new_status}.",
                status=current,
            )
        if new_status in STAFF_ONLY and not is_staff(user):
            raise NotPermitted(f"Only staff may mark an appointment {new_status}.")
        require_self_or_staff(user, donor, 'cancel appointments')

        if new_status == Appointment.COMPLETED:
            _settle_blood_group(donor, blood_group)
        if new_status in STAFF_ONLY:
            ensure_eligible(donor, on=timezone.localtime(appointment.scheduled_at).date())

        appointment.status = new_status
        appointment.save(update_fields=['status', 'updated_at'])

        if new_status == Appointment.CANCELLED:
            _release_camp_seat(appointment)
        elif new_status == Appointment.COMPLETED:
            _record_donation(appointment)

    logger.info("Appointment %s: %s -> %s", appointment.pk, current, new_status)
    return appointment


def cancel(appointment_id, user):
    return transition(appointment_id, Appointment.CANCELLED, user)


def _settle_blood_group(donor, blood_group):
    """A collected unit must carry a real group; staff may supply it at collection."""
    if donor.blood_group != UNKNOWN_GROUP:
        return
    if blood_group is None:
        raise ValidationError("Record the donor's blood group before completing the donation.",
                              donor=donor.pk)
    donor.blood_group = blood_group
    donor.save(update_fields=['blood_group'])


def _registration_for(appointment):
    if appointment.camp_id is None:
        return None
    lock_camp(appointment.camp_id)
    return Registration.objects.select_for_update().filter(appointment=appointment).first()


def _release_camp_seat(appointment):
    registration = _registration_for(appointment)
    if registration is not None:
        release_registration(registration)


def _record_donation(appointment):
    donor = appointment.donor
    collected_on = timezone.localtime(appointment.scheduled_at).date()

    registration = _registration_for(appointment)
    if registration is not None and registration.status == Registration.ACTIVE:
        registration.status = Registration.COMPLETED
        registration.save(update_fields=['status'])

    DonationHistory.objects.create(
        donor=donor,
        appointment=appointment,
        blood_group=donor.blood_group,
        donation_type=appointment.donation_type,
        donated_on=collected_on,
    )
    unit = BloodUnit.objects.create(
        blood_group=donor.blood_group,
        donor=donor,
        source_appointment=appointment,
        collected_at=appointment.scheduled_at,
        expiry_date=collected_on + timedelta(days=conf.unit_shelf_life_days()),
    )
    logger.info("Unit %s collected from donor %s, awaiting lab", unit.pk, donor.pk)
    return unit


def appointments_for(user, donor_id=None, status=None):
    qs = Appointment.objects.select_related('donor', 'hospital', 'camp')
    if not is_staff(user):
        qs = qs.filter(donor__user=user)
    if donor_id is not None:
        qs = qs.filter(donor_id=donor_id)
    if status:
        qs = qs.filter(status=status)
    return qs
