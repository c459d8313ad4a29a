import pytest

from bloodnet.services.compatibility import (
    ALL_GROUPS,
    acceptable_from,
    donable_to,
    parse_blood_group,
)


def test_o_negative_donates_to_every_group():
    assert donable_to('O', '-') == ALL_GROUPS
    assert len(donable_to('O', '-')) == 8


def test_ab_positive_donates_only_to_itself():
    assert donable_to('AB', '+') == {('AB', '+')}


@pytest.mark.parametrize('group, expected', [
    (('A', '+'), {('A', '+'), ('AB', '+')}),
    (('A', '-'), {('A', '+'), ('A', '-'), ('AB', '+'), ('AB', '-')}),
    (('B', '-'), {('B', '+'), ('B', '-'), ('AB', '+'), ('AB', '-')}),
    (('O', '+'), {('O', '+'), ('A', '+'), ('B', '+'), ('AB', '+')}),
])
def test_donable_to(group, expected):
    assert donable_to(*group) == expected


def test_ab_positive_accepts_from_everyone():
    assert acceptable_from('AB', '+') == ALL_GROUPS


def test_o_negative_accepts_only_o_negative():
    assert acceptable_from('O', '-') == {('O', '-')}


def test_acceptable_from_is_inverse_of_donable_to():
    for recipient in ALL_GROUPS:
        for donor in ALL_GROUPS:
            assert (donor in acceptable_from(*recipient)) == (recipient in donable_to(*donor))


@pytest.mark.parametrize('blood_type, rh_factor', [
    ('C', '+'), ('A', 'positive'), (None, '+'), ('A', None), ('', ''),
])
def test_invalid_input_has_no_compatible_groups(blood_type, rh_factor):
    assert donable_to(blood_type, rh_factor) == frozenset()
    assert acceptable_from(blood_type, rh_factor) == frozenset()


def test_lowercase_type_is_normalized():
    assert donable_to('ab', '+') == {('AB', '+')}


@pytest.mark.parametrize('token, expected', [
    ('O+', ('O', '+')),
    ('ab-', ('AB', '-')),
    (' B+ ', ('B', '+')),
    ('A', None),
    ('A+-', None),
    ('C+', None),
    ('O positive', None),
    (None, None),
])
def test_parse_blood_group(token, expected):
    assert parse_blood_group(token) == expected
