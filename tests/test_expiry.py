from datetime import datetime, timedelta

import pytest

from bloodnet.constants import DonationType
from bloodnet.services.expiry import DEFAULT_SHELF_LIFE_DAYS, calculate_expiry, shelf_life_days

COLLECTED = datetime(2024, 1, 10, 9, 30)


@pytest.mark.parametrize('donation_type, days', [
    ('whole_blood', 42),
    ('red_cells', 42),
    ('platelets', 5),
    ('plasma', 365),
    ('white_cells', 1),
    ('stem_cells', 365),
    ('bone_marrow', 1),
    ('cord_blood', 365),
])
def test_shelf_life_per_product(donation_type, days):
    assert calculate_expiry(COLLECTED, donation_type) == COLLECTED + timedelta(days=days)


def test_missing_type_defaults_to_whole_blood():
    assert calculate_expiry(COLLECTED) == COLLECTED + timedelta(days=42)


def test_unknown_type_defaults_to_whole_blood():
    assert shelf_life_days('granulocytes') == DEFAULT_SHELF_LIFE_DAYS == 42


def test_enum_member_accepted():
    assert shelf_life_days(DonationType.PLATELETS) == 5
