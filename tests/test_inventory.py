from datetime import timedelta

from bloodnet.constants import BloodUnitStatus, DonationStatus
from bloodnet.extensions import db
from bloodnet.models import Donation
from bloodnet.services.compatibility import acceptable_from

from conftest import NOW


def test_find_available_is_oldest_first_and_compatible(services, make_unit, make_bank):
    bank = make_bank()
    newest = make_unit('O', '-', donated_days_ago=1, bank=bank)
    oldest = make_unit('O', '-', donated_days_ago=20, bank=bank)
    middle = make_unit('A', '+', donated_days_ago=10, bank=bank)
    make_unit('B', '+', donated_days_ago=15, bank=bank)

    units = services.inventory.find_available(acceptable_from('A', '+'), NOW)

    assert [u.id for u in units] == [oldest.id, middle.id, newest.id]


def test_find_available_skips_expired_reserved_and_incomplete(services, make_unit, make_bank):
    bank = make_bank()
    good = make_unit('O', '-', bank=bank)
    make_unit('O', '-', bank=bank, expiry_date=NOW - timedelta(hours=1))
    make_unit('O', '-', bank=bank, unit_status=BloodUnitStatus.RESERVED.value)
    pending = make_unit('O', '-', bank=bank)
    pending.status = DonationStatus.SCHEDULED.value
    db.session.commit()

    units = services.inventory.find_available({('O', '-')}, NOW)

    assert [u.id for u in units] == [good.id]


def test_find_available_by_blood_bank_and_limit(services, make_unit, make_bank):
    first, second = make_bank(), make_bank()
    make_unit('O', '-', bank=first, donated_days_ago=3)
    mine = [make_unit('O', '-', bank=second, donated_days_ago=d) for d in (9, 8, 7)]

    units = services.inventory.find_available({('O', '-')}, NOW, blood_bank_id=second.id, limit=2)

    assert [u.id for u in units] == [mine[0].id, mine[1].id]


def test_no_groups_means_no_units(services, make_unit):
    make_unit('O', '-')
    assert services.inventory.find_available(frozenset(), NOW) == []


def test_expired_and_expiring_windows(services, make_unit):
    expired = make_unit(expiry_date=NOW - timedelta(days=1))
    reserved_expired = make_unit(expiry_date=NOW - timedelta(minutes=5),
                                 unit_status=BloodUnitStatus.RESERVED.value)
    make_unit(expiry_date=NOW - timedelta(days=2), unit_status=BloodUnitStatus.DISPATCHED.value)
    soon = make_unit(expiry_date=NOW + timedelta(days=2))
    make_unit(expiry_date=NOW + timedelta(days=10))

    assert {u.id for u in services.inventory.find_expired(NOW)} == {expired.id, reserved_expired.id}
    assert [u.id for u in services.inventory.find_expiring_soon(NOW, 3)] == [soon.id]


def test_unit_expiring_right_now_is_still_available(services, make_unit):
    edge = make_unit(expiry_date=NOW)
    groups = acceptable_from('O', '-')

    assert [u.id for u in services.inventory.find_available(groups, NOW)] == [edge.id]
    assert services.inventory.find_expired(NOW) == []

def test_conditional_update_has_a_single_winner(services, make_unit):
    unit = make_unit()
    expected = [BloodUnitStatus.IN_INVENTORY]

    first = services.inventory.conditional_update(
        unit.id, expected, {'unit_status': BloodUnitStatus.RESERVED, 'reserved_for_request_id': 1})
    second = services.inventory.conditional_update(
        unit.id, expected, {'unit_status': BloodUnitStatus.RESERVED, 'reserved_for_request_id': 2})

    assert first is True
    assert second is False
    stored = db.session.get(Donation, unit.id)
    assert stored.unit_status == 'reserved'
    assert stored.reserved_for_request_id == 1


def test_conditional_update_ignores_incomplete_donations(services, make_unit):
    unit = make_unit(unit_status=None)
    unit.status = DonationStatus.SCHEDULED.value
    db.session.commit()

    assert not services.inventory.conditional_update(
        unit.id, [None], {'unit_status': BloodUnitStatus.IN_INVENTORY})


def test_count_by_status_reports_every_status(services, make_unit):
    make_unit()
    make_unit()
    make_unit(unit_status=BloodUnitStatus.USED.value)

    counts = services.inventory.count_by_status()

    assert counts['in_inventory'] == 2
    assert counts['used'] == 1
    assert counts['quarantined'] == 0
    assert set(counts) == {s.value for s in BloodUnitStatus}
