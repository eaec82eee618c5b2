"""
Dispatch of tested inventory against emergency requests.

The request row is locked for the whole dispatch and each unit is consumed
with a compare-and-swap on (status, quantity). Any lost swap aborts the
transaction, so a dispatch either takes every unit it counted or none.
"""
import logging

from django.db import transaction
from django.db.models import Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .exceptions import ConcurrentUpdate, InvalidTransition, OverFulfillment, ValidationError
from .models import BLOOD_GROUPS, BloodUnit, EmergencyRequest
from .permissions import require_staff
from .safety import dispensable

logger = logging.getLogger(__name__)


def create_request(hospital, blood_group, units_requested, urgency='CRITICAL'):
    if not hospital:
        raise ValidationError("Hospital is required.")
    if blood_group not in dict(BLOOD_GROUPS):
        raise ValidationError("Invalid blood group.")
    if units_requested < 1:
        raise ValidationError("Units must be greater than zero.")
    if urgency not in dict(EmergencyRequest.URGENCY):
        raise ValidationError(f"Unknown urgency {urgency!r}.")
    request = EmergencyRequest.objects.create(
        hospital=hospital, blood_group=blood_group,
        units_requested=units_requested, urgency=urgency,
    )
    logger.info("Emergency request %s: %s units of %s for %s (%s)",
                request.pk, units_requested, blood_group, hospital, urgency)
    return request


def active_requests():
    return EmergencyRequest.objects.exclude(status=EmergencyRequest.FULFILLED)


def all_requests():
    return EmergencyRequest.objects.all()


def fulfill(request_id, units, user, today=None, now=None):
    require_staff(user, 'dispatch inventory')
    if not isinstance(units, int) or isinstance(units, bool) or units < 1:
        raise ValidationError("Units to send must be greater than zero.")
    today = today or timezone.localdate()
    now = now or timezone.now()

    with transaction.atomic():
        request = get_object_or_404(EmergencyRequest.objects.select_for_update(), pk=request_id)
        if request.status == EmergencyRequest.FULFILLED:
            raise InvalidTransition("Request already fulfilled.")

        remaining = request.units_remaining
        if units > remaining:
            raise OverFulfillment(
                f"Only {remaining} unit(s) remain on this request.",
                remaining=remaining,
            )

        candidates = list(
            dispensable(request.blood_group, today)
            .select_for_update()
            .order_by('expiry_date', 'collected_at', 'pk')
        )
        in_stock = sum(unit.quantity for unit in candidates)
        if units > in_stock:
            raise OverFulfillment(
                f"Only {in_stock} usable unit(s) of {request.blood_group} in stock.",
                available=in_stock,
            )

        needed = units
        for unit in candidates:
            if needed == 0:
                break
            take = min(unit.quantity, needed)
            _consume(unit, take, request, now)
            needed -= take

        fulfilled = request.units_fulfilled + units
        swapped = (
            EmergencyRequest.objects
            .filter(pk=request.pk, units_fulfilled=request.units_fulfilled)
            .update(
                units_fulfilled=fulfilled,
                status=EmergencyRequest.status_for(fulfilled, request.units_requested),
            )
        )
        if not swapped:
            raise ConcurrentUpdate("Request was updated by another dispatch.")
        request.refresh_from_db()

    logger.info("Dispatched %s unit(s) of %s to request %s (%s/%s, %s)",
                units, request.blood_group, request.pk,
                request.units_fulfilled, request.units_requested, request.status)
    return request


def _consume(unit, take, request, now):
    left = unit.quantity - take
    changes = {'quantity': left}
    if left == 0:
        changes.update(status=BloodUnit.DISPATCHED, dispatched_to=request, dispatched_at=now)
    swapped = (
        BloodUnit.objects
        .filter(pk=unit.pk, status=BloodUnit.AVAILABLE, quantity=unit.quantity)
        .update(**changes)
    )
    if not swapped:
        raise ConcurrentUpdate(f"Unit {unit.pk} was taken by another dispatch.")


def stock_level(blood_group, today=None):
    return dispensable(blood_group, today).aggregate(total=Sum('quantity'))['total'] or 0
