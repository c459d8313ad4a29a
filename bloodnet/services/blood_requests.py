import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import FrozenSet, Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.constants import (
    PRIORITY_RANK,
    ActivityType,
    RequestPriority,
    RequestStatus,
    Role,
)
from bloodnet.errors import AuthorizationError, NotFoundError, ValidationError
from bloodnet.extensions import db
from bloodnet.models import BloodRequest
from bloodnet.services.access import authorize_request_access
from bloodnet.services.compatibility import donable_to, format_group, normalize_rh, normalize_type
from bloodnet.services.geo import distance_km
from bloodnet.services.side_effects import fire_and_forget
from bloodnet.utils import parse_datetime, parse_id, parse_positive_int, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DonorRequestFilter:
    """Open requests a donor can help with.

    ``near``/``radius_km`` are only set when the donor has both a location and
    a travel distance.
    """
    blood_groups: FrozenSet[Tuple[str, str]]
    statuses: Tuple[str, ...] = (RequestStatus.PENDING.value,)
    near: Optional[Tuple[float, float]] = None
    radius_km: Optional[float] = None

    @property
    def has_geo_clause(self):
        return self.near is not None

    def criteria(self):
        if not self.blood_groups:
            return None
        return and_(
            BloodRequest.status.in_(self.statuses),
            or_(*[
                and_(BloodRequest.blood_type == t, BloodRequest.rh_factor == r)
                for t, r in sorted(self.blood_groups)
            ]),
        )

    def apply(self, query=None):
        criteria = self.criteria()
        if criteria is None:
            return []
        if query is None:
            query = BloodRequest.query
        query = query.filter(criteria)
        rows = query.order_by(BloodRequest.required_by.asc()).all()
        if not self.has_geo_clause:
            return rows
        return [
            row for row in rows
            if row.latitude is not None and row.longitude is not None
            and distance_km(self.near, (row.latitude, row.longitude)) <= self.radius_km
        ]

    def to_dict(self):
        return {
            'statuses': list(self.statuses),
            'bloodGroups': sorted(format_group(g) for g in self.blood_groups),
            'near': list(self.near) if self.near else None,
            'radiusKm': self.radius_km,
        }


def build_donor_request_filter(donor):
    near = radius = None
    if donor.has_location and donor.max_travel_distance:
        near = (donor.latitude, donor.longitude)
        radius = donor.max_travel_distance
    return DonorRequestFilter(
        blood_groups=donable_to(donor.blood_type, donor.rh_factor),
        near=near,
        radius_km=radius,
    )


class BloodRequestService:
    def __init__(self, engine, profiles, audit):
        self.engine = engine
        self.profiles = profiles
        self.audit = audit

    def get(self, request_id):
        blood_request = db.session.get(BloodRequest, request_id)
        if blood_request is None:
            raise NotFoundError(f'Blood request with ID {request_id} not found', field='id')
        return blood_request

    def create(self, data, actor):
        institution_id = self._institution_for(data, actor)
        blood_type = normalize_type(data.get('bloodType'))
        rh_factor = normalize_rh(data.get('rhFactor'))
        if blood_type is None or rh_factor is None:
            raise ValidationError('bloodType and rhFactor must form a valid ABO/Rh group', field='bloodType')

        priority = data.get('priority', RequestPriority.MEDIUM.value)
        if priority not in PRIORITY_RANK:
            raise ValidationError(f'Unknown priority: {priority}', field='priority')

        required_by = parse_datetime(data.get('requiredBy'), 'requiredBy')
        if required_by is None:
            raise ValidationError('requiredBy is required', field='requiredBy')

        latitude, longitude = self._coordinates(data.get('coordinates'))

        blood_request = BloodRequest(
            institution_id=institution_id,
            requested_by=actor.user_id if actor else None,
            blood_type=blood_type,
            rh_factor=rh_factor,
            units_required=parse_positive_int(data.get('unitsRequired'), 'unitsRequired'),
            units_fulfilled=0,
            priority=priority,
            required_by=required_by,
            patient_condition=data.get('patientCondition'),
            notes=data.get('notes'),
            latitude=latitude,
            longitude=longitude,
            location_label=data.get('locationLabel'),
            notify_nearby_donors=bool(data.get('notifyNearbyDonors', True)),
        )
        try:
            db.session.add(blood_request)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        self.engine.announce_request(blood_request)
        fire_and_forget(
            'audit request created', self.audit.log_activity,
            ActivityType.BLOOD_REQUEST_CREATED,
            'Blood Request Created',
            f'{blood_request.units_required} unit(s) of {blood_request.blood_group} requested '
            f'({blood_request.priority} priority)',
            actor.user_id if actor else None,
            {'requestId': blood_request.id, 'institutionId': institution_id},
        )
        return blood_request

    def _institution_for(self, data, actor):
        if actor is not None and actor.role == Role.MEDICAL_INSTITUTION:
            institution = self.profiles.find_institution_by_user(actor.user_id)
            if institution is None:
                raise AuthorizationError('No medical institution profile for this user')
            return institution.id
        institution_id = parse_id(data.get('institution'), 'institution')
        if self.profiles.find_institution_by_id(institution_id) is None:
            raise NotFoundError(f'Medical institution with ID {institution_id} not found', field='institution')
        return institution_id

    @staticmethod
    def _coordinates(coordinates):
        if coordinates is None:
            return None, None
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
            raise ValidationError('coordinates must be [longitude, latitude]', field='coordinates')
        try:
            longitude, latitude = float(coordinates[0]), float(coordinates[1])
        except (TypeError, ValueError):
            raise ValidationError('coordinates must be numeric', field='coordinates')
        if not -180 <= longitude <= 180 or not -90 <= latitude <= 90:
            raise ValidationError('coordinates are out of range', field='coordinates')
        return latitude, longitude

    def open_requests_for_donor(self, donor_id):
        donor = self.profiles.find_donor_by_id(donor_id)
        if donor is None:
            raise NotFoundError(f'Donor with ID {donor_id} not found', field='donorId')
        request_filter = build_donor_request_filter(donor)
        return request_filter, request_filter.apply()

    def urgent(self, now=None):
        """Pending requests that are critical, or high priority and due within a day."""
        now = now or utcnow()
        rows = BloodRequest.query.filter(
            BloodRequest.status == RequestStatus.PENDING.value,
            or_(
                BloodRequest.priority == RequestPriority.CRITICAL.value,
                and_(BloodRequest.priority == RequestPriority.HIGH.value,
                     BloodRequest.required_by < now + timedelta(days=1)),
            ),
        ).all()
        return sorted(rows, key=lambda r: (-PRIORITY_RANK[r.priority], r.required_by))

    def update_status(self, request_id, status, actor=None):
        blood_request = self.get(request_id)
        authorize_request_access(actor, blood_request, self.profiles)
        try:
            status = RequestStatus(status).value
        except ValueError:
            raise ValidationError(f'Unknown request status: {status}', field='status')
        if status == RequestStatus.FULFILLED.value \
                and blood_request.units_fulfilled < blood_request.units_required:
            raise ValidationError(
                'A request is fulfilled only once enough units are reserved or dispatched',
                field='status',
            )
        blood_request.status = status
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return blood_request
