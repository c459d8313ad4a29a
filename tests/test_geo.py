import pytest

from bloodnet.services.geo import (
    EARTH_RADIUS_KM,
    GeospatialLocator,
    bounding_box,
    distance_km,
    donor_radius_km,
)

from conftest import ENTEBBE, GULU, KAMPALA


def test_distance_uses_shared_earth_radius():
    # A quarter of a meridian
    assert distance_km((0, 0), (90, 0)) == pytest.approx(EARTH_RADIUS_KM * 3.141592653589793 / 2)


def test_kampala_to_entebbe():
    assert 30 < distance_km(KAMPALA, ENTEBBE) < 40


def test_bounding_box_contains_radius():
    min_lat, max_lat, min_lng, max_lng = bounding_box(KAMPALA, 50)
    assert min_lat < ENTEBBE[0] < max_lat
    assert min_lng < ENTEBBE[1] < max_lng


def test_bounding_box_near_pole_spans_all_longitudes():
    _, max_lat, min_lng, max_lng = bounding_box((89.9, 10), 100)
    assert max_lat == 90.0
    assert (min_lng, max_lng) == (-180.0, 180.0)


def test_donor_radius_by_priority(app):
    assert donor_radius_km('critical', app.config) == 20
    assert donor_radius_km('high', app.config) == 50


def test_nearby_donors_within_radius_nearest_first(app, make_donor):
    near = make_donor('O', '-', location=KAMPALA)
    farther = make_donor('O', '-', location=ENTEBBE)
    make_donor('O', '-', location=GULU)
    make_donor('O', '-', location=None)

    found = GeospatialLocator().nearby_donors(KAMPALA, 50)

    assert [donor.id for donor, _ in found] == [near.id, farther.id]
    assert found[0][1] == pytest.approx(0, abs=1e-6)


def test_nearby_donors_excludes_ineligible_and_other_groups(app, make_donor):
    wanted = make_donor('O', '-')
    make_donor('O', '-', is_eligible=False)
    make_donor('AB', '+')

    ids = GeospatialLocator().nearby_donor_ids(KAMPALA, 10, {('O', '-'), ('A', '+')})

    assert ids == [wanted.id]


def test_empty_group_set_matches_nobody(app, make_donor):
    make_donor('O', '-')
    assert GeospatialLocator().nearby_donors(KAMPALA, 10, frozenset()) == []


def test_results_are_capped(app, make_donor, make_bank):
    for _ in range(4):
        make_donor('O', '+')
        make_bank()

    locator = GeospatialLocator(max_donors=3, max_blood_banks=2)

    assert len(locator.nearby_donor_ids(KAMPALA, 10)) == 3
    assert len(locator.nearby_blood_bank_ids(KAMPALA, 10)) == 2


def test_inactive_blood_banks_are_skipped(app, make_bank):
    active = make_bank()
    make_bank(is_active=False)
    make_bank(location=GULU)

    assert GeospatialLocator().nearby_blood_bank_ids(KAMPALA, 100) == [active.id]


def test_nearby_requests_are_pending_and_within_radius(app, make_request):
    near = make_request('A', '+', location=ENTEBBE)
    nearest = make_request('A', '+', location=KAMPALA)
    make_request('A', '+', location=GULU)
    make_request('A', '+', status='fulfilled')
    make_request('B', '+')

    found = GeospatialLocator().nearby_requests(KAMPALA, 50, ('A', '+'))

    assert [r.id for r, _ in found] == [nearest.id, near.id]
