"""
Lab testing of collected units.

A unit is tested exactly once. A positive result discards the unit and, in
the same transaction, permanently defers the donor who gave it.
"""
import logging

from django.db import transaction
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .exceptions import InvalidTransition, ValidationError
from .models import BLOOD_GROUPS, BloodUnit, Donor
from .permissions import require_staff

logger = logging.getLogger(__name__)

PATHOGENS = ('hiv', 'hepatitis', 'malaria')


def record_test_result(unit_id, user, positive=None, reason=None, now=None, **pathogens):
    require_staff(user, 'record lab results')
    unknown = set(pathogens) - set(PATHOGENS)
    if unknown:
        raise ValidationError(f"Unknown pathogen(s): {', '.join(sorted(unknown))}.")
    flags = {name: bool(pathogens.get(name, False)) for name in PATHOGENS}
    if positive is None:
        positive = any(flags.values())
    reason = (reason or '').strip()
    if positive and not reason:
        raise ValidationError("A reason is required for a positive result.")

    now = now or timezone.now()
    with transaction.atomic():
        unit = get_object_or_404(BloodUnit.objects.select_for_update(), pk=unit_id)
        if unit.test_status != BloodUnit.PENDING:
            raise InvalidTransition(
                f"Unit {unit.pk} was already tested ({unit.test_status}).",
                test_status=unit.test_status,
            )

        for name, value in flags.items():
            setattr(unit, name, value)
        unit.tested_at = now
        unit.tested_by = user
        if positive:
            unit.test_status = BloodUnit.TESTED_POSITIVE
            unit.safety_flag = BloodUnit.BIOHAZARD
            unit.status = BloodUnit.DISCARD
            unit.test_reason = reason
        else:
            unit.test_status = BloodUnit.TESTED_SAFE
            unit.safety_flag = BloodUnit.SAFE
            unit.status = BloodUnit.AVAILABLE
        unit.save()

        if positive and unit.donor_id is not None:
            _defer_donor(unit.donor_id, reason)

    logger.info("Unit %s tested %s", unit.pk, unit.test_status)
    return unit


def _defer_donor(donor_id, reason):
    donor = Donor.objects.select_for_update().get(pk=donor_id)
    if donor.safety_status == Donor.POSITIVE:
        return donor
    # Both fields in one UPDATE so readers never see half of it.
    Donor.objects.filter(pk=donor_id).update(safety_status=Donor.POSITIVE, safety_reason=reason)
    logger.warning("Donor %s permanently deferred: %s", donor_id, reason)
    donor.refresh_from_db()
    return donor


def add_unit(blood_group, expiry_date, user, quantity=1, collected_at=None):
    """Intake a unit collected outside an appointment; it still has to be tested."""
    require_staff(user, 'add inventory')
    if blood_group not in dict(BLOOD_GROUPS):
        raise ValidationError("Invalid blood group.")
    if quantity < 1:
        raise ValidationError("Quantity must be greater than zero.")
    unit = BloodUnit.objects.create(
        blood_group=blood_group,
        expiry_date=expiry_date,
        quantity=quantity,
        collected_at=collected_at or timezone.now(),
    )
    logger.info("Unit %s (%s x%s) added to lab queue", unit.pk, blood_group, quantity)
    return unit


def pending_units():
    return BloodUnit.objects.filter(test_status=BloodUnit.PENDING).order_by('collected_at', 'pk')


def inventory(status=None, blood_group=None):
    qs = BloodUnit.objects.select_related('donor')
    if status:
        qs = qs.filter(status=status)
    if blood_group:
        qs = qs.filter(blood_group=blood_group)
    return qs


def dispensable(blood_group=None, today=None):
    today = today or timezone.localdate()
    qs = BloodUnit.objects.filter(status=BloodUnit.AVAILABLE, quantity__gt=0, expiry_date__gte=today)
    if blood_group:
        qs = qs.filter(blood_group=blood_group)
    return qs


def available_summary(today=None):
    totals = dict(
        dispensable(today=today)
        .values('blood_group')
        .annotate(total_units=Sum('quantity'))
        .values_list('blood_group', 'total_units')
    )
    return [{'blood_group': bg, 'total_units': totals.get(bg, 0)} for bg, _ in BLOOD_GROUPS]
