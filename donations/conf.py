from django.conf import settings

from .models import PLASMA, PLATELETS, WHOLE_BLOOD

DEFAULT_DONATION_INTERVALS = {
    WHOLE_BLOOD: {'M': 84, 'F': 112, 'default': 84},
    PLATELETS: {'default': 14},
    PLASMA: {'default': 28},
}

DEFAULT_UNIT_SHELF_LIFE_DAYS = 35


def donation_intervals():
    return getattr(settings, 'LIFELINE_DONATION_INTERVALS', DEFAULT_DONATION_INTERVALS)


def interval_days(donation_type, sex=''):
    """Required gap after a donation of ``donation_type`` for a donor of ``sex``."""
    table = donation_intervals()
    row = table.get(donation_type) or table[WHOLE_BLOOD]
    if sex and sex in row:
        return row[sex]
    return row['default']


def unit_shelf_life_days():
    return getattr(settings, 'LIFELINE_UNIT_SHELF_LIFE_DAYS', DEFAULT_UNIT_SHELF_LIFE_DAYS)
