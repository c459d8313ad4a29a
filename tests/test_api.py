from datetime import timedelta

from flask_jwt_extended import create_access_token

from bloodnet.extensions import db
from bloodnet.models import Donation

from conftest import KAMPALA, NOW


def test_requests_without_token_are_rejected(client):
    response = client.post('/api/v1/donations/', json={})
    assert response.status_code == 401


def test_wrong_role_is_forbidden(client, auth_headers):
    response = client.post('/api/v1/donations/', json={}, headers=auth_headers('donor'))
    assert response.status_code == 403


def test_token_without_role_cannot_use_units(client, make_unit):
    unit = make_unit(unit_status='dispatched', dispatched_to='Elsewhere')
    headers = {'Authorization': f'Bearer {create_access_token(identity="999")}'}

    response = client.patch(f'/api/v1/donations/{unit.id}/use', headers=headers,
                            json={'usedFor': 'surgery'})

    assert response.status_code == 403
    assert db.session.get(Donation, unit.id).unit_status == 'dispatched'


def test_token_with_unknown_role_cannot_track_units(client, auth_headers, make_unit):
    unit = make_unit()

    response = client.get(f'/api/v1/donations/{unit.id}/tracking', headers=auth_headers('superuser'))

    assert response.status_code == 403
    assert response.get_json()['field'] == 'role'


def test_record_donation(client, auth_headers, make_donor, make_bank):
    donor, bank = make_donor('A', '+'), make_bank()

    response = client.post('/api/v1/donations/', headers=auth_headers(), json={
        'donor': donor.id, 'bloodBank': bank.id, 'status': 'completed',
    })

    assert response.status_code == 201
    assert response.get_json()['unitStatus'] == 'in_inventory'


def test_validation_errors_name_the_field(client, auth_headers, make_bank):
    response = client.post('/api/v1/donations/', headers=auth_headers(), json={
        'donor': 'abc', 'bloodBank': make_bank().id,
    })

    assert response.status_code == 400
    assert response.get_json()['field'] == 'donor'


def test_invalid_transition_is_a_conflict(client, auth_headers, make_unit):
    unit = make_unit(unit_status='used')

    response = client.patch(f'/api/v1/donations/{unit.id}/status', headers=auth_headers(),
                            json={'unitStatus': 'in_inventory'})

    assert response.status_code == 409
    body = response.get_json()
    assert body['currentStatus'] == 'used'
    assert body['requestedStatus'] == 'in_inventory'


def test_auto_fulfill_endpoint(client, auth_headers, make_unit, make_request):
    for days in (3, 2):
        make_unit('O', '-', donated_days_ago=days)
    blood_request = make_request('A', '+', units_required=3)

    response = client.post(f'/api/v1/donations/auto-fulfill-request/{blood_request.id}',
                           headers=auth_headers(),
                           json={'bloodType': 'A', 'rhFactor': '+', 'unitsNeeded': 3})

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['outcome'] == 'partial'
    assert body['reservedCount'] == 2


def test_blood_bank_auto_fulfills_from_own_stock(client, auth_headers, make_bank, make_unit, make_request):
    mine = make_bank(user_id='bank-user')
    own = make_unit('O', '-', bank=mine)
    make_unit('O', '-', donated_days_ago=20)
    blood_request = make_request('O', '-', units_required=2)

    response = client.post(f'/api/v1/donations/auto-fulfill-request/{blood_request.id}',
                           headers=auth_headers('blood_bank', 'bank-user'),
                           json={'bloodType': 'O', 'rhFactor': '-', 'unitsNeeded': 2})

    assert response.get_json()['reservedUnitIds'] == [own.id]


def test_reserve_single_unit_twice(client, auth_headers, make_unit, make_request):
    unit = make_unit()
    first, second = make_request('O', '-'), make_request('O', '-')

    ok = client.patch(f'/api/v1/donations/{unit.id}/reserve/{first.id}', headers=auth_headers())
    taken = client.patch(f'/api/v1/donations/{unit.id}/reserve/{second.id}', headers=auth_headers())

    assert ok.status_code == 200
    assert taken.status_code == 409
    assert db.session.get(Donation, unit.id).reserved_for_request_id == first.id


def test_expiring_soon_endpoint(client, auth_headers, make_unit):
    soon = make_unit(expiry_date=NOW + timedelta(days=1))
    make_unit()

    response = client.get('/api/v1/donations/blood-units/expiring-soon?days=3', headers=auth_headers())

    assert [u['id'] for u in response.get_json()] == [soon.id]


def test_nearby_donors_by_blood_type(client, auth_headers, make_donor):
    wanted = make_donor('O', '-')
    make_donor('A', '+')

    response = client.get('/api/v1/donors/nearby', headers=auth_headers(), query_string={
        'lat': KAMPALA[0], 'lng': KAMPALA[1], 'radius': 5, 'bloodType': 'O-',
    })

    assert response.status_code == 200
    assert [d['id'] for d in response.get_json()] == [wanted.id]


def test_nearby_donors_rejects_malformed_blood_type(client, auth_headers):
    response = client.get('/api/v1/donors/nearby', headers=auth_headers(), query_string={
        'lat': KAMPALA[0], 'lng': KAMPALA[1], 'bloodType': 'X+',
    })

    assert response.status_code == 400
    assert response.get_json()['field'] == 'bloodType'


def test_institution_creates_request_for_itself(client, auth_headers, make_institution):
    institution = make_institution(user_id='hospital-user')

    response = client.post('/api/v1/blood-requests/', headers=auth_headers('medical_institution', 'hospital-user'),
                           json={
                               'bloodType': 'B', 'rhFactor': '-', 'unitsRequired': 1,
                               'requiredBy': (NOW + timedelta(days=1)).isoformat(),
                           })

    assert response.status_code == 201
    assert response.get_json()['institutionId'] == institution.id


def test_schedule_conflict_reports_cause(client, auth_headers, make_donor, make_bank):
    donor, bank = make_donor(), make_bank()
    payload = {'donor': donor.id, 'bloodBank': bank.id,
               'scheduledDate': (NOW + timedelta(days=2)).date().isoformat(),
               'timeSlot': '10:00-11:00'}

    created = client.post('/api/v1/donation-schedules/', headers=auth_headers(), json=payload)
    clash = client.post('/api/v1/donation-schedules/', headers=auth_headers(), json=payload)

    assert created.status_code == 201
    assert clash.status_code == 409
    assert clash.get_json()['cause'] == 'donor_conflict'


def test_schedule_stats_include_zero_counts(client, auth_headers):
    response = client.get('/api/v1/donation-schedules/stats', headers=auth_headers())
    assert response.get_json() == {
        'scheduled': 0, 'confirmed': 0, 'cancelled': 0, 'completed': 0, 'no_show': 0,
    }


def test_nearby_blood_requests(client, auth_headers, make_request):
    wanted = make_request('A', '+', location=KAMPALA)
    make_request('O', '-', location=KAMPALA)

    response = client.get('/api/v1/blood-requests/nearby', headers=auth_headers('donor'), query_string={
        'lat': KAMPALA[0], 'lng': KAMPALA[1], 'bloodType': 'A+',
    })

    assert response.status_code == 200
    body = response.get_json()
    assert [r['id'] for r in body] == [wanted.id]
    assert body[0]['distanceKm'] == 0


def test_donor_donation_stats(client, auth_headers, make_donor, make_unit):
    donor = make_donor('O', '-', user_id='donor-user')
    first = make_unit(donor=donor, donated_days_ago=90, volume_collected=450)
    make_unit(donor=donor, donated_days_ago=10, volume_collected=400)

    response = client.get(f'/api/v1/donors/{donor.id}/donations/stats',
                          headers=auth_headers('donor', 'donor-user'))

    assert response.status_code == 200
    body = response.get_json()
    assert body['totalDonations'] == 2
    assert body['volumeDonated'] == 850
    assert body['firstDonation'] == first.donation_date.isoformat()
    assert [d['id'] for d in body['donationHistory']][0] == first.id


def test_donor_cannot_read_another_donors_stats(client, auth_headers, make_donor):
    make_donor(user_id='donor-user')
    other = make_donor()

    response = client.get(f'/api/v1/donors/{other.id}/donations/stats',
                          headers=auth_headers('donor', 'donor-user'))

    assert response.status_code == 403
