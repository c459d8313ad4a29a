"""ABO/Rh compatibility between donors and recipients.

Groups are handled as ``(blood_type, rh_factor)`` tuples such as ``('O', '-')``.
Unknown or missing input never raises: it simply has no compatible groups.
"""
import re

BLOOD_TYPES = ('O', 'A', 'B', 'AB')
RH_FACTORS = ('+', '-')

ALL_GROUPS = frozenset((t, r) for t in BLOOD_TYPES for r in RH_FACTORS)

# ABO: which recipient types each donor type may supply
_ABO_DONATES_TO = {
    'O': ('O', 'A', 'B', 'AB'),
    'A': ('A', 'AB'),
    'B': ('B', 'AB'),
    'AB': ('AB',),
}

# Rh: negative donors supply both, positive donors only positive recipients
_RH_DONATES_TO = {
    '-': ('+', '-'),
    '+': ('+',),
}

_GROUP_TOKEN = re.compile(r'^\s*(AB|A|B|O)\s*([+-])\s*$', re.IGNORECASE)


def normalize_type(blood_type):
    if not isinstance(blood_type, str):
        return None
    value = blood_type.strip().upper()
    return value if value in _ABO_DONATES_TO else None


def normalize_rh(rh_factor):
    if not isinstance(rh_factor, str):
        return None
    value = rh_factor.strip()
    return value if value in _RH_DONATES_TO else None


def parse_blood_group(token):
    """Split an ``"O+"`` style token into ``('O', '+')``, or None if malformed."""
    if not isinstance(token, str):
        return None
    match = _GROUP_TOKEN.match(token)
    if not match:
        return None
    return match.group(1).upper(), match.group(2)


def format_group(group):
    return f'{group[0]}{group[1]}'


def donable_to(blood_type, rh_factor):
    """Recipient groups a donor of ``blood_type``/``rh_factor`` may supply."""
    abo = normalize_type(blood_type)
    rh = normalize_rh(rh_factor)
    if abo is None or rh is None:
        return frozenset()
    return frozenset(
        (t, r) for t in _ABO_DONATES_TO[abo] for r in _RH_DONATES_TO[rh]
    )


def acceptable_from(blood_type, rh_factor):
    """Donor groups a recipient of ``blood_type``/``rh_factor`` may receive."""
    abo = normalize_type(blood_type)
    rh = normalize_rh(rh_factor)
    if abo is None or rh is None:
        return frozenset()
    return frozenset(
        donor for donor in ALL_GROUPS if (abo, rh) in donable_to(*donor)
    )
