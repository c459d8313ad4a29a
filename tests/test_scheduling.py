from datetime import timedelta

import pytest

from bloodnet.errors import ConflictError, NotFoundError, ValidationError
from bloodnet.services.scheduling import parse_time_slot

from conftest import NOW

TOMORROW = (NOW + timedelta(days=1)).date().isoformat()
NEXT_WEEK = (NOW + timedelta(days=7)).date().isoformat()


@pytest.fixture
def book(services, make_donor, make_bank):
    def factory(donor=None, bank=None, date=TOMORROW, slot='09:00-10:00'):
        donor = donor or make_donor()
        bank = bank or make_bank()
        return services.schedules.create({
            'donor': donor.id, 'bloodBank': bank.id,
            'scheduledDate': date, 'timeSlot': slot,
        })
    return factory


@pytest.mark.parametrize('raw, normalized', [
    ('09:00-10:00', '09:00-10:00'),
    ('9:00-10:30', '09:00-10:30'),
    (' 14:15-15:00 ', '14:15-15:00'),
])
def test_time_slot_normalized(raw, normalized):
    assert parse_time_slot(raw) == normalized


@pytest.mark.parametrize('raw', ['25:00-26:00', '10:00-09:00', '10:00-10:00', '0900-1000', None])
def test_invalid_time_slots(raw):
    with pytest.raises(ValidationError):
        parse_time_slot(raw)


def test_donor_cannot_double_book(book, make_donor, make_bank):
    donor = make_donor()
    book(donor=donor)

    with pytest.raises(ConflictError) as excinfo:
        book(donor=donor, bank=make_bank())

    assert excinfo.value.cause == ConflictError.DONOR_CONFLICT


def test_bank_slot_capacity(book, make_bank):
    bank = make_bank()
    book(bank=bank)

    with pytest.raises(ConflictError) as excinfo:
        book(bank=bank)

    assert excinfo.value.cause == ConflictError.CAPACITY_CONFLICT


def test_donor_conflict_reported_before_capacity(book, make_donor, make_bank):
    donor, bank = make_donor(), make_bank()
    book(donor=donor, bank=bank)

    with pytest.raises(ConflictError) as excinfo:
        book(donor=donor, bank=bank)

    assert excinfo.value.cause == ConflictError.DONOR_CONFLICT


def test_equivalent_slot_spellings_conflict(book, make_bank):
    bank = make_bank()
    book(bank=bank, slot='09:00-10:00')

    with pytest.raises(ConflictError):
        book(bank=bank, slot='9:00-10:00')


def test_cancelled_schedules_do_not_block(services, book, make_bank):
    bank = make_bank()
    first = book(bank=bank)
    services.schedules.cancel(first.id, 'feeling unwell')

    second = book(bank=bank)

    assert second.status == 'scheduled'


def test_update_does_not_conflict_with_itself(services, book):
    schedule = book()

    updated = services.schedules.update(schedule.id, {
        'scheduledDate': TOMORROW, 'timeSlot': '09:00-10:00', 'notes': 'bring ID',
    })

    assert updated.notes == 'bring ID'


def test_reschedule_into_taken_slot_is_rejected(services, book, make_bank):
    bank = make_bank()
    book(bank=bank, slot='09:00-10:00')
    other = book(bank=bank, slot='10:00-11:00')

    with pytest.raises(ConflictError):
        services.schedules.update(other.id, {'timeSlot': '09:00-10:00'})

    assert services.schedules.get(other.id).time_slot == '10:00-11:00'


def test_past_dates_are_rejected(book):
    yesterday = (NOW - timedelta(days=1)).date().isoformat()
    with pytest.raises(ValidationError):
        book(date=yesterday)


def test_unknown_donor(services, make_bank):
    with pytest.raises(NotFoundError):
        services.schedules.create({'donor': 999, 'bloodBank': make_bank().id,
                                   'scheduledDate': TOMORROW, 'timeSlot': '09:00-10:00'})


def test_status_lifecycle(services, book):
    schedule = book(date=NEXT_WEEK)

    assert services.schedules.confirm(schedule.id).confirmed_at is not None
    cancelled = services.schedules.cancel(schedule.id, 'travel')
    assert cancelled.status == 'cancelled'
    assert cancelled.cancellation_reason == 'travel'


def test_upcoming_and_stats(services, book, make_bank):
    bank = make_bank()
    soon = book(bank=bank, date=TOMORROW, slot='00:00-23:59')
    later = book(bank=bank, date=NEXT_WEEK)
    services.schedules.cancel(later.id, None)

    upcoming = services.schedules.upcoming(hours=48, now=NOW)
    stats = services.schedules.stats(bank.id)

    assert [s.id for s in upcoming] == [soon.id]
    assert stats['scheduled'] == 1
    assert stats['cancelled'] == 1
    assert stats['completed'] == 0
