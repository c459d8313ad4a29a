from datetime import timedelta
from types import SimpleNamespace

import pytest

from bloodnet import jobs
from bloodnet.models import ActivityLog, Donation
from bloodnet.extensions import db

from conftest import NOW


@pytest.fixture(autouse=True)
def bound_scheduler(app, monkeypatch):
    monkeypatch.setattr(jobs, 'scheduler', SimpleNamespace(app=app))


def test_expiry_job_runs_the_sweep(make_unit):
    unit = make_unit(expiry_date=NOW - timedelta(days=1))

    jobs.process_expired_units()

    assert db.session.get(Donation, unit.id).unit_status == 'expired'


def test_failed_job_raises_an_alert(services, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError('database went away')

    monkeypatch.setattr(services.sweeper, 'inventory_report', broken)

    jobs.inventory_report()

    alert = ActivityLog.query.filter_by(activity_type='alert').one()
    assert 'database went away' in alert.description
