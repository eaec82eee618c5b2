from datetime import time, timedelta

import pytest

from donations.models import Appointment, BloodUnit, Camp

from .conftest import at

pytestmark = pytest.mark.django_db


def iso(dt):
    return dt.isoformat()


def test_eligibility_endpoint(api, donor):
    api.force_authenticate(donor.user)

    resp = api.get(f'/api/donors/{donor.pk}/eligibility/')

    assert resp.status_code == 200
    assert resp.json() == {'eligible': True, 'reason': None, 'next_eligible_date': None, 'kind': None}


def test_donor_cannot_read_other_donor(api, donor, make_donor):
    other = make_donor('bob')
    api.force_authenticate(donor.user)

    assert api.get(f'/api/donors/{other.pk}/eligibility/').status_code == 404


def test_book_and_cancel_as_donor(api, donor, hospital, tomorrow):
    api.force_authenticate(donor.user)

    resp = api.post('/api/appointments/', {
        'center_type': 'hospital',
        'center_id': hospital.pk,
        'scheduled_at': iso(at(tomorrow, 10)),
    }, format='json')
    assert resp.status_code == 201, resp.json()
    body = resp.json()
    assert body['status'] == 'Scheduled'
    assert body['donor'] == donor.pk

    resp = api.put(f"/api/appointments/{body['id']}/cancel/")
    assert resp.status_code == 200
    assert resp.json()['status'] == 'Cancelled'


def test_donor_cannot_complete(api, donor, hospital, tomorrow):
    api.force_authenticate(donor.user)
    appt_id = api.post('/api/appointments/', {
        'center_type': 'HOSPITAL', 'center_id': hospital.pk, 'scheduled_at': iso(at(tomorrow, 10)),
    }, format='json').json()['id']

    resp = api.put(f'/api/appointments/{appt_id}/status/', {'status': 'Approved'}, format='json')

    assert resp.status_code == 403
    assert resp.json()['code'] == 'forbidden'


def test_full_and_duplicate_camp_registration(api, donor, make_donor, make_camp):
    camp = make_camp(capacity=1)
    api.force_authenticate(donor.user)

    assert api.post(f'/api/camps/{camp.pk}/register/', {}, format='json').status_code == 201

    dup = api.post(f'/api/camps/{camp.pk}/register/', {}, format='json')
    assert dup.status_code == 409
    assert dup.json()['code'] == 'duplicate'

    api.force_authenticate(make_donor('late').user)
    full = api.post(f'/api/camps/{camp.pk}/register/', {}, format='json')
    assert full.status_code == 409
    assert full.json()['code'] == 'full'


def test_camp_check_in_is_staff_only(api, donor, staff, make_camp):
    camp = make_camp()
    api.force_authenticate(donor.user)
    api.post(f'/api/camps/{camp.pk}/register/', {}, format='json')

    assert api.post(f'/api/camps/{camp.pk}/check-in/', {'donor': donor.pk}, format='json').status_code == 403

    api.force_authenticate(staff)
    resp = api.post(f'/api/camps/{camp.pk}/check-in/', {'donor': donor.pk}, format='json')
    assert resp.status_code == 200
    assert resp.json()['checked_in'] is True


def test_camp_list_reports_status(api, donor, make_camp):
    make_camp(capacity=None)
    api.force_authenticate(donor.user)

    camps = api.get('/api/camps/').json()

    assert camps[0]['camp_status'] == Camp.UPCOMING
    assert camps[0]['capacity'] is None
    assert camps[0]['is_full'] is False


def test_create_camp_rejects_backwards_window(api, staff, tomorrow):
    api.force_authenticate(staff)

    resp = api.post('/api/camps/', {
        'name': 'Galle Donation Event', 'date': str(tomorrow),
        'start_time': '12:30', 'end_time': '08:30',
    }, format='json')

    assert resp.status_code == 400
    assert not Camp.objects.exists()


def test_create_camp(api, staff, tomorrow):
    api.force_authenticate(staff)

    resp = api.post('/api/camps/', {
        'name': 'Galle Donation Event', 'date': str(tomorrow),
        'start_time': '08:30', 'end_time': '12:30', 'capacity': 40,
    }, format='json')

    assert resp.status_code == 201, resp.json()
    assert resp.json()['registration_count'] == 0


def test_full_lifecycle_through_api(api, donor, staff, make_camp, tomorrow):
    camp = make_camp(start=time(9), end=time(13))
    api.force_authenticate(donor.user)
    appt_id = api.post('/api/appointments/', {
        'center_type': 'CAMP', 'center_id': camp.pk, 'scheduled_at': iso(at(tomorrow, 11)),
    }, format='json').json()['id']

    api.force_authenticate(staff)
    for status in ('Approved', 'Completed'):
        resp = api.put(f'/api/appointments/{appt_id}/status/', {'status': status}, format='json')
        assert resp.status_code == 200, resp.json()

    pending = api.get('/api/inventory/pending/').json()
    assert len(pending) == 1
    unit_id = pending[0]['id']

    missing_reason = api.put(f'/api/inventory/{unit_id}/test/', {'positive': True}, format='json')
    assert missing_reason.status_code == 400

    resp = api.put(f'/api/inventory/{unit_id}/test/', {'hiv': True, 'reason': 'HIV reactive'}, format='json')
    assert resp.status_code == 200
    assert resp.json()['safety_flag'] == BloodUnit.BIOHAZARD

    again = api.put(f'/api/inventory/{unit_id}/test/', {'positive': False}, format='json')
    assert again.status_code == 409
    assert again.json()['code'] == 'invalid_transition'

    verdict = api.get(f'/api/donors/{donor.pk}/eligibility/').json()
    assert verdict['eligible'] is False
    assert verdict['reason'] == 'HIV reactive'

    blocked = api.post('/api/appointments/', {
        'donor': donor.pk, 'center_type': 'HOSPITAL', 'center_id': 999,
        'scheduled_at': iso(at(tomorrow + timedelta(days=400), 10)),
    }, format='json')
    assert blocked.status_code == 409
    assert blocked.json()['code'] == 'ineligible'
    assert Appointment.objects.count() == 1


def test_emergency_request_flow(api, staff, donor, make_unit):
    for _ in range(3):
        make_unit('AB-')
    api.force_authenticate(staff)

    created = api.post('/api/emergency-requests/', {
        'hospital': 'Colombo National Hospital', 'blood_group': 'AB-', 'units_requested': 4,
    }, format='json')
    assert created.status_code == 201, created.json()
    req_id = created.json()['id']

    ok = api.put(f'/api/emergency-requests/{req_id}/fulfill/', {'units': 2}, format='json')
    assert ok.status_code == 200
    assert ok.json()['status'] == 'PARTIAL'
    assert ok.json()['units_remaining'] == 2

    over = api.put(f'/api/emergency-requests/{req_id}/fulfill/', {'units': 2}, format='json')
    assert over.status_code == 409
    assert over.json()['code'] == 'over_fulfillment'

    assert api.put(f'/api/emergency-requests/{req_id}/fulfill/', {'units': 0}, format='json').status_code == 400

    api.force_authenticate(donor.user)
    active = api.get('/api/emergency-requests/?active=1').json()
    assert [r['id'] for r in active] == [req_id]
    assert api.put(f'/api/emergency-requests/{req_id}/fulfill/', {'units': 1}, format='json').status_code == 403


def test_inventory_is_staff_only_but_summary_is_not(api, donor, make_unit):
    make_unit('B+', quantity=2)
    api.force_authenticate(donor.user)

    assert api.get('/api/inventory/').status_code == 403
    summary = {row['blood_group']: row['total_units'] for row in api.get('/api/inventory/summary/').json()}
    assert summary['B+'] == 2


def test_unauthenticated_is_rejected(api):
    assert api.get('/api/camps/').status_code in (401, 403)


@pytest.mark.parametrize('query', ['donor=abc', 'donor=0', 'status=Paused'])
def test_bad_appointment_filters_are_rejected(api, staff, query):
    api.force_authenticate(staff)

    resp = api.get(f'/api/appointments/?{query}')

    assert resp.status_code == 400


def test_appointment_filters(api, staff, donor, make_donor, hospital, tomorrow):
    api.force_authenticate(staff)
    for who, hour in ((donor, 9), (make_donor('kasun'), 10)):
        api.post('/api/appointments/', {
            'donor': who.pk, 'center_type': 'HOSPITAL', 'center_id': hospital.pk,
            'scheduled_at': iso(at(tomorrow, hour)),
        }, format='json')

    mine = api.get(f'/api/appointments/?donor={donor.pk}&status=Scheduled').json()

    assert [a['donor'] for a in mine] == [donor.pk]
    assert len(api.get('/api/appointments/?status=').json()) == 2


def test_bad_inventory_filter_is_rejected(api, staff, make_unit):
    make_unit('A+')
    api.force_authenticate(staff)

    assert api.get('/api/inventory/?blood_group=Z%2B').status_code == 400
    assert api.get('/api/inventory/?status=LOST').status_code == 400
    assert len(api.get('/api/inventory/?blood_group=A%2B&status=AVAILABLE').json()) == 1


def test_completion_records_blood_group(api, staff, make_donor, hospital, tomorrow):
    walk_in = make_donor('walkin', blood_group='UNKNOWN')
    api.force_authenticate(staff)
    appt_id = api.post('/api/appointments/', {
        'donor': walk_in.pk, 'center_type': 'HOSPITAL', 'center_id': hospital.pk,
        'scheduled_at': iso(at(tomorrow, 10)),
    }, format='json').json()['id']
    api.put(f'/api/appointments/{appt_id}/status/', {'status': 'Approved'}, format='json')

    missing = api.put(f'/api/appointments/{appt_id}/status/', {'status': 'Completed'}, format='json')
    assert missing.status_code == 400
    assert missing.json()['code'] == 'invalid'

    done = api.put(f'/api/appointments/{appt_id}/status/',
                   {'status': 'Completed', 'blood_group': 'A-'}, format='json')
    assert done.status_code == 200
    assert BloodUnit.objects.get(source_appointment_id=appt_id).blood_group == 'A-'
