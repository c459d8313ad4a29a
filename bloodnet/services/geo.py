"""Proximity queries for donors and blood banks.

Distances are great-circle distances on a sphere of ``EARTH_RADIUS_KM``. The
same constant drives the SQL bounding-box prefilter, so a point either lies in
the radius everywhere or nowhere.
"""
import math

from geopy.distance import great_circle

from bloodnet.constants import RequestPriority, RequestStatus
from bloodnet.models import BloodBank, BloodRequest, Donor

EARTH_RADIUS_KM = 6371.0


def distance_km(origin, target):
    """Distance between two ``(latitude, longitude)`` points."""
    return great_circle(origin, target, radius=EARTH_RADIUS_KM).km


def km_to_radians(radius_km):
    return radius_km / EARTH_RADIUS_KM


def bounding_box(point, radius_km):
    """``(min_lat, max_lat, min_lng, max_lng)`` enclosing the radius."""
    lat, lng = point
    lat_delta = math.degrees(km_to_radians(radius_km))
    min_lat, max_lat = lat - lat_delta, lat + lat_delta
    cos_lat = math.cos(math.radians(lat))
    if min_lat <= -90 or max_lat >= 90 or cos_lat < 1e-9:
        return max(min_lat, -90.0), min(max_lat, 90.0), -180.0, 180.0
    lng_delta = math.degrees(km_to_radians(radius_km) / cos_lat)
    if lng_delta >= 180:
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, lng - lng_delta, lng + lng_delta


def _box_filter(model, point, radius_km):
    min_lat, max_lat, min_lng, max_lng = bounding_box(point, radius_km)
    clauses = [
        model.latitude.isnot(None),
        model.longitude.isnot(None),
        model.latitude.between(min_lat, max_lat),
    ]
    if min_lng >= -180 and max_lng <= 180:
        clauses.append(model.longitude.between(min_lng, max_lng))
    # Boxes crossing the antimeridian keep the full longitude range
    return clauses


def donor_radius_km(priority, config):
    if priority == RequestPriority.CRITICAL.value:
        return config['CRITICAL_DONOR_RADIUS_KM']
    return config['DEFAULT_DONOR_RADIUS_KM']


class GeospatialLocator:
    def __init__(self, max_donors=100, max_blood_banks=20):
        self.max_donors = max_donors
        self.max_blood_banks = max_blood_banks

    def _rank(self, rows, point, radius_km, limit):
        ranked = []
        for row in rows:
            distance = distance_km(point, (row.latitude, row.longitude))
            if distance <= radius_km:
                ranked.append((distance, row.id, row))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return ranked[:limit] if limit is not None else ranked

    def nearby_donors(self, point, radius_km, blood_groups=None, limit=None):
        """Eligible donors within ``radius_km`` of ``point``, nearest first.

        ``blood_groups`` restricts to donors whose (type, Rh) is in the set;
        an empty set matches nobody.
        """
        if blood_groups is not None and not blood_groups:
            return []
        query = Donor.query.filter(Donor.is_eligible.is_(True), *_box_filter(Donor, point, radius_km))
        rows = query.all()
        if blood_groups is not None:
            rows = [d for d in rows if (d.blood_type, d.rh_factor) in blood_groups]
        limit = self.max_donors if limit is None else limit
        return [(row, distance) for distance, _, row in self._rank(rows, point, radius_km, limit)]

    def nearby_blood_banks(self, point, radius_km, limit=None):
        query = BloodBank.query.filter(BloodBank.is_active.is_(True), *_box_filter(BloodBank, point, radius_km))
        limit = self.max_blood_banks if limit is None else limit
        return [(row, distance) for distance, _, row in self._rank(query.all(), point, radius_km, limit)]

    def nearby_donor_ids(self, point, radius_km, blood_groups=None):
        return [donor.id for donor, _ in self.nearby_donors(point, radius_km, blood_groups)]

    def nearby_blood_bank_ids(self, point, radius_km):
        return [bank.id for bank, _ in self.nearby_blood_banks(point, radius_km)]

    def nearby_requests(self, point, radius_km, blood_group=None, limit=None):
        """Pending requests located within ``radius_km``, nearest first."""
        query = BloodRequest.query.filter(
            BloodRequest.status == RequestStatus.PENDING.value,
            *_box_filter(BloodRequest, point, radius_km),
        )
        if blood_group is not None:
            blood_type, rh_factor = blood_group
            query = query.filter(BloodRequest.blood_type == blood_type,
                                 BloodRequest.rh_factor == rh_factor)
        return [(row, distance) for distance, _, row in self._rank(query.all(), point, radius_km, limit)]
