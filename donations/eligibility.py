"""
Donor eligibility. Always computed from the current database state; nothing
here is cached because the answer changes with time and with every completed
donation or lab result.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from django.shortcuts import get_object_or_404
from django.utils import timezone

from . import conf
from .exceptions import EligibilityBlocked
from .models import DonationHistory, Donor

logger = logging.getLogger(__name__)

SAFETY = 'SAFETY'
RECENT_DONATION = 'RECENT_DONATION'


@dataclass(frozen=True)
class Eligibility:
    eligible: bool
    reason: str | None = None
    next_eligible_date: date | None = None
    kind: str | None = None

    def as_dict(self):
        return {
            'eligible': self.eligible,
            'reason': self.reason,
            'next_eligible_date': self.next_eligible_date,
            'kind': self.kind,
        }


def last_donation(donor):
    return (
        DonationHistory.objects
        .filter(donor=donor)
        .order_by('-donated_on', '-pk')
        .first()
    )


def evaluate(donor, on=None):
    on = on or timezone.localdate()

    if donor.safety_status == Donor.POSITIVE:
        return Eligibility(
            eligible=False,
            reason=donor.safety_reason or 'Donor is permanently deferred after a positive test.',
            kind=SAFETY,
        )

    last = last_donation(donor)
    if last is not None:
        required = conf.interval_days(last.donation_type, donor.sex)
        if (on - last.donated_on).days < required:
            nxt = last.donated_on + timedelta(days=required)
            return Eligibility(
                eligible=False,
                reason=f"Last donation on {last.donated_on} requires a {required}-day gap; "
                       f"next eligible on {nxt}.",
                next_eligible_date=nxt,
                kind=RECENT_DONATION,
            )

    return Eligibility(eligible=True)


def eligibility_for(donor_id, on=None):
    donor = get_object_or_404(Donor, pk=donor_id)
    return evaluate(donor, on=on)


def ensure_eligible(donor, on=None):
    verdict = evaluate(donor, on=on)
    if not verdict.eligible:
        logger.warning("Donor %s blocked (%s): %s", donor.pk, verdict.kind, verdict.reason)
        raise EligibilityBlocked(
            verdict.reason,
            reason=verdict.reason,
            next_eligible_date=verdict.next_eligible_date,
            kind=verdict.kind,
        )
    return verdict
