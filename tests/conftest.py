from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from bloodnet import create_app
from bloodnet.config import TestingConfig
from bloodnet.constants import BloodUnitStatus, DonationStatus
from bloodnet.extensions import db
from bloodnet.models import BloodBank, BloodRequest, Donation, Donor, MedicalInstitution
from bloodnet.services import get_services
from bloodnet.services.expiry import calculate_expiry
from bloodnet.services.interfaces import Notifier
from bloodnet.utils import utcnow

NOW = utcnow().replace(microsecond=0)
KAMPALA = (0.3476, 32.5825)
ENTEBBE = (0.0512, 32.4637)  # ~37 km from Kampala
GULU = (2.7724, 32.2881)     # ~270 km from Kampala


class RecordingNotifier(Notifier):
    def __init__(self):
        self.new_requests = []
        self.fulfilled = []
        self.expiring = []
        self.fail = False

    def notify_new_blood_request(self, request_id, blood_type, location_label, priority,
                                 donor_ids, blood_bank_ids):
        if self.fail:
            raise RuntimeError('notifier down')
        self.new_requests.append({
            'request_id': request_id, 'blood_type': blood_type, 'priority': priority,
            'donor_ids': list(donor_ids), 'blood_bank_ids': list(blood_bank_ids),
        })

    def notify_blood_request_fulfilled(self, requester_id, request_id, blood_type, fulfilled_by):
        if self.fail:
            raise RuntimeError('notifier down')
        self.fulfilled.append((requester_id, request_id, blood_type, fulfilled_by))

    def notify_expiring_units(self, blood_bank_id, units):
        if self.fail:
            raise RuntimeError('notifier down')
        self.expiring.append((blood_bank_id, [u.id for u in units]))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(notifier):
    app = create_app(TestingConfig, notifier=notifier)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


def _save(obj):
    db.session.add(obj)
    db.session.commit()
    return obj


@pytest.fixture
def make_donor(app):
    def factory(blood_type='O', rh_factor='+', location=KAMPALA, **kwargs):
        latitude, longitude = location if location else (None, None)
        kwargs.setdefault('name', 'Test Donor')
        kwargs.setdefault('phone', '+256700000001')
        return _save(Donor(blood_type=blood_type, rh_factor=rh_factor,
                           latitude=latitude, longitude=longitude, **kwargs))
    return factory


@pytest.fixture
def make_bank(app):
    counter = {'n': 0}

    def factory(location=KAMPALA, **kwargs):
        counter['n'] += 1
        latitude, longitude = location if location else (None, None)
        kwargs.setdefault('name', f'Blood Bank {counter["n"]}')
        kwargs.setdefault('email', f'bank{counter["n"]}@example.org')
        return _save(BloodBank(latitude=latitude, longitude=longitude, **kwargs))
    return factory


@pytest.fixture
def make_institution(app):
    counter = {'n': 0}

    def factory(**kwargs):
        counter['n'] += 1
        kwargs.setdefault('name', f'Hospital {counter["n"]}')
        return _save(MedicalInstitution(**kwargs))
    return factory


@pytest.fixture
def make_unit(app, make_donor, make_bank):
    """A completed donation tracked as a blood unit."""
    def factory(blood_type='O', rh_factor='-', donated_days_ago=5, bank=None, donor=None,
                unit_status=BloodUnitStatus.IN_INVENTORY.value, expiry_date=None, **kwargs):
        donor = donor or make_donor(blood_type=blood_type, rh_factor=rh_factor)
        bank = bank or make_bank()
        donation_date = NOW - timedelta(days=donated_days_ago)
        return _save(Donation(
            donor_id=donor.id,
            blood_bank_id=bank.id,
            blood_type=blood_type,
            rh_factor=rh_factor,
            donation_date=donation_date,
            status=DonationStatus.COMPLETED.value,
            unit_status=unit_status,
            expiry_date=expiry_date or calculate_expiry(donation_date),
            **kwargs
        ))
    return factory


@pytest.fixture
def make_request(app, make_institution):
    def factory(blood_type='A', rh_factor='+', units_required=1, institution=None,
                location=KAMPALA, **kwargs):
        institution = institution or make_institution()
        latitude, longitude = location if location else (None, None)
        kwargs.setdefault('required_by', NOW + timedelta(days=2))
        return _save(BloodRequest(
            institution_id=institution.id,
            blood_type=blood_type,
            rh_factor=rh_factor,
            units_required=units_required,
            units_fulfilled=0,
            latitude=latitude,
            longitude=longitude,
            **kwargs
        ))
    return factory


@pytest.fixture
def auth_headers(app):
    def factory(role='admin', user_id='1'):
        token = create_access_token(identity=str(user_id), additional_claims={'role': role})
        return {'Authorization': f'Bearer {token}'}
    return factory
