import itertools

import pytest

from bloodnet.constants import BloodUnitStatus as S
from bloodnet.errors import InvalidTransitionError, ValidationError
from bloodnet.services.unit_status import (
    TERMINAL_STATUSES,
    can_transition,
    is_terminal,
    validate_transition,
)

ALLOWED = {
    (S.IN_INVENTORY, S.RESERVED), (S.IN_INVENTORY, S.DISPATCHED), (S.IN_INVENTORY, S.DISCARDED),
    (S.IN_INVENTORY, S.EXPIRED), (S.IN_INVENTORY, S.QUARANTINED),
    (S.RESERVED, S.DISPATCHED), (S.RESERVED, S.IN_INVENTORY), (S.RESERVED, S.DISCARDED),
    (S.RESERVED, S.EXPIRED), (S.RESERVED, S.QUARANTINED),
    (S.DISPATCHED, S.USED), (S.DISPATCHED, S.DISCARDED),
    (S.QUARANTINED, S.IN_INVENTORY), (S.QUARANTINED, S.DISCARDED),
}


@pytest.mark.parametrize('current, requested', list(itertools.product(S, S)))
def test_transition_table(current, requested):
    expected = (current, requested) in ALLOWED
    assert can_transition(current, requested) is expected
    if expected:
        assert validate_transition(current.value, requested.value) == requested
    else:
        with pytest.raises(InvalidTransitionError) as excinfo:
            validate_transition(current, requested)
        assert excinfo.value.code == 409
        assert excinfo.value.to_dict()['currentStatus'] == current.value


@pytest.mark.parametrize('requested', list(S))
def test_unit_without_status_may_take_any_status(requested):
    assert validate_transition(None, requested) == requested


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {S.USED, S.EXPIRED, S.DISCARDED}
    assert is_terminal('used')
    assert not is_terminal('reserved')


def test_unknown_status_is_a_validation_error():
    with pytest.raises(ValidationError):
        validate_transition('in_inventory', 'lost')


def test_missing_requested_status():
    with pytest.raises(ValidationError):
        validate_transition('in_inventory', None)
