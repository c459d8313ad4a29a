from datetime import timedelta

from bloodnet.constants import DonationType

DEFAULT_SHELF_LIFE_DAYS = 42

SHELF_LIFE_DAYS = {
    DonationType.WHOLE_BLOOD.value: 42,
    DonationType.RED_CELLS.value: 42,
    DonationType.PLATELETS.value: 5,
    DonationType.PLASMA.value: 365,
    DonationType.WHITE_CELLS.value: 1,
    DonationType.STEM_CELLS.value: 365,
    DonationType.BONE_MARROW.value: 1,
    DonationType.CORD_BLOOD.value: 365,
}


def shelf_life_days(donation_type):
    if isinstance(donation_type, DonationType):
        donation_type = donation_type.value
    return SHELF_LIFE_DAYS.get(donation_type, DEFAULT_SHELF_LIFE_DAYS)


def calculate_expiry(collected_at, donation_type=None):
    """Expiry timestamp for a unit collected at ``collected_at``.

    Unknown or missing product types fall back to the whole-blood shelf life.
    """
    return collected_at + timedelta(days=shelf_life_days(donation_type))
