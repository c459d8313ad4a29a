"""Transition table for blood unit statuses.

Every status change on a unit is validated here before anything is written.
A unit with no status yet (a freshly completed donation) may take any status.
"""
from bloodnet.constants import BloodUnitStatus
from bloodnet.errors import InvalidTransitionError, ValidationError

S = BloodUnitStatus

TRANSITIONS = {
    S.IN_INVENTORY: frozenset({S.RESERVED, S.DISPATCHED, S.DISCARDED, S.EXPIRED, S.QUARANTINED}),
    S.RESERVED: frozenset({S.DISPATCHED, S.IN_INVENTORY, S.DISCARDED, S.EXPIRED, S.QUARANTINED}),
    S.DISPATCHED: frozenset({S.USED, S.DISCARDED}),
    S.QUARANTINED: frozenset({S.IN_INVENTORY, S.DISCARDED}),
    S.USED: frozenset(),
    S.EXPIRED: frozenset(),
    S.DISCARDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

# Statuses the expiry sweep retires
SWEEPABLE_STATUSES = (S.IN_INVENTORY, S.RESERVED)


def coerce_status(value, field='unitStatus'):
    if value is None or isinstance(value, BloodUnitStatus):
        return value
    try:
        return BloodUnitStatus(value)
    except ValueError:
        raise ValidationError(f'Unknown blood unit status: {value}', field=field)


def allowed_targets(current):
    current = coerce_status(current)
    if current is None:
        return frozenset(BloodUnitStatus)
    return TRANSITIONS[current]


def can_transition(current, requested):
    return coerce_status(requested) in allowed_targets(current)


def validate_transition(current, requested):
    """Raise InvalidTransitionError unless ``current -> requested`` is allowed."""
    current = coerce_status(current)
    requested = coerce_status(requested)
    if requested is None:
        raise ValidationError('unitStatus is required', field='unitStatus')
    if requested not in allowed_targets(current):
        raise InvalidTransitionError(
            current.value if current is not None else None,
            requested.value,
        )
    return requested


def is_terminal(status):
    return coerce_status(status) in TERMINAL_STATUSES
