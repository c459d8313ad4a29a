"""Matching requests to donors, blood banks and inventory.

Discovery finds compatible eligible donors and active blood banks near a new
request and hands them to the notifier. Auto-fulfillment reserves compatible
in-inventory units oldest-first; each reservation is an independent
conditional write, so a batch can end partially reserved.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from bloodnet.constants import ActivityType, RequestStatus
from bloodnet.errors import ApiError, NotFoundError, ValidationError
from bloodnet.extensions import db
from bloodnet.models import BloodRequest, Donation
from bloodnet.services.access import authorize_request_access
from bloodnet.services.compatibility import acceptable_from
from bloodnet.services.geo import donor_radius_km
from bloodnet.services.side_effects import fire_and_forget
from bloodnet.utils import parse_positive_int, utcnow

logger = logging.getLogger(__name__)

OUTCOME_FULFILLED = 'fulfilled'
OUTCOME_PARTIAL = 'partial'
OUTCOME_UNAVAILABLE = 'unavailable'


@dataclass
class FulfillmentResult:
    request_id: Optional[int]
    units_needed: int
    reserved_unit_ids: List[int] = field(default_factory=list)
    failed_unit_ids: List[int] = field(default_factory=list)
    request_status: Optional[str] = None

    @property
    def reserved_count(self):
        return len(self.reserved_unit_ids)

    @property
    def success(self):
        return self.reserved_count > 0

    @property
    def outcome(self):
        if self.reserved_count == 0:
            return OUTCOME_UNAVAILABLE
        if self.reserved_count < self.units_needed:
            return OUTCOME_PARTIAL
        return OUTCOME_FULFILLED

    @property
    def message(self):
        if self.outcome == OUTCOME_UNAVAILABLE:
            return 'No compatible blood units available'
        if self.outcome == OUTCOME_PARTIAL:
            return f'Partially fulfilled: reserved {self.reserved_count} of {self.units_needed} units'
        return f'Reserved all {self.units_needed} units'

    def to_dict(self):
        return {
            'success': self.success,
            'outcome': self.outcome,
            'message': self.message,
            'requestId': self.request_id,
            'unitsNeeded': self.units_needed,
            'reservedCount': self.reserved_count,
            'reservedUnitIds': list(self.reserved_unit_ids),
            'failedUnitIds': list(self.failed_unit_ids),
            'requestStatus': self.request_status,
        }


class FulfillmentEngine:
    def __init__(self, inventory, units, locator, profiles, notifier, audit, settings):
        self.inventory = inventory
        self.units = units
        self.locator = locator
        self.profiles = profiles
        self.notifier = notifier
        self.audit = audit
        self.settings = settings

    # -- discovery ----------------------------------------------------------

    def discover(self, blood_request):
        """Donor and blood bank ids to alert for ``blood_request``."""
        if blood_request.latitude is None or blood_request.longitude is None:
            return [], []
        point = (blood_request.latitude, blood_request.longitude)
        donor_groups = acceptable_from(blood_request.blood_type, blood_request.rh_factor)

        donor_ids = self.locator.nearby_donor_ids(
            point, donor_radius_km(blood_request.priority, self.settings), donor_groups)
        bank_ids = self.locator.nearby_blood_bank_ids(point, self.settings['BLOOD_BANK_RADIUS_KM'])
        return donor_ids, bank_ids

    def _discover_and_notify(self, blood_request):
        donor_ids, bank_ids = self.discover(blood_request)
        self.notifier.notify_new_blood_request(
            blood_request.id,
            blood_request.blood_group,
            blood_request.location_label,
            blood_request.priority,
            donor_ids,
            bank_ids,
        )

    def announce_request(self, blood_request):
        """Best effort: never fails the caller. Returns whether it went through."""
        if not self.settings.get('REQUEST_NOTIFICATIONS_ENABLED', True):
            return False
        if not blood_request.notify_nearby_donors:
            return False
        return fire_and_forget(
            f'announce blood request {blood_request.id}',
            self._discover_and_notify, blood_request,
        )

    # -- inventory matching -------------------------------------------------

    def find_suitable_units(self, blood_type, rh_factor, units_needed, blood_bank_id=None, now=None):
        """Oldest compatible in-inventory units, at most ``units_needed``."""
        units_needed = parse_positive_int(units_needed, 'unitsNeeded')
        groups = acceptable_from(blood_type, rh_factor)
        return self.inventory.find_available(groups, now or utcnow(), blood_bank_id, limit=units_needed)

    def auto_fulfill(self, request_id, blood_type, rh_factor, units_needed,
                     blood_bank_id=None, actor=None, now=None):
        units_needed = parse_positive_int(units_needed, 'unitsNeeded')
        blood_request = self._open_request(request_id, actor)

        remaining = blood_request.units_remaining
        if units_needed > remaining:
            logger.info('Request %s needs only %d more units; capping %d', request_id, remaining, units_needed)
            units_needed = remaining

        groups = acceptable_from(blood_type, rh_factor)
        candidates = self.inventory.find_available(groups, now or utcnow(), blood_bank_id)
        result = FulfillmentResult(request_id=blood_request.id, units_needed=units_needed)

        if not candidates:
            logger.info('No compatible units for request %s (%s%s)', request_id, blood_type, rh_factor)
            result.request_status = blood_request.status
            return result

        for unit in candidates:
            if result.reserved_count == units_needed:
                break
            if self._try_reserve(unit.id, blood_request.id):
                result.reserved_unit_ids.append(unit.id)
            else:
                result.failed_unit_ids.append(unit.id)

        self._finish(blood_request.id, result, actor)
        return result

    def reserve_units(self, request_id, unit_ids, actor=None):
        """Reserve an explicit list of units for a request, unit by unit."""
        if not isinstance(unit_ids, (list, tuple)) or not unit_ids:
            raise ValidationError('donationIds must be a non-empty list', field='donationIds')
        blood_request = self._open_request(request_id, actor)
        groups = acceptable_from(blood_request.blood_type, blood_request.rh_factor)

        result = FulfillmentResult(request_id=blood_request.id, units_needed=len(unit_ids))
        for unit_id in unit_ids:
            unit = self.inventory.get_unit(unit_id)
            if unit is None or (unit.blood_type, unit.rh_factor) not in groups:
                logger.info('Unit %s is missing or incompatible with request %s', unit_id, request_id)
                result.failed_unit_ids.append(unit_id)
                continue
            if result.reserved_count < blood_request.units_remaining \
                    and self._try_reserve(unit.id, blood_request.id):
                result.reserved_unit_ids.append(unit.id)
            else:
                result.failed_unit_ids.append(unit.id)

        self._finish(blood_request.id, result, actor)
        return result

    def _open_request(self, request_id, actor):
        blood_request = db.session.get(BloodRequest, request_id)
        if blood_request is None:
            raise NotFoundError(f'Blood request with ID {request_id} not found', field='requestId')
        authorize_request_access(actor, blood_request, self.profiles)
        if not blood_request.is_open:
            raise ValidationError(
                f'Blood request {request_id} is {blood_request.status} and cannot be fulfilled',
                field='requestId',
            )
        return blood_request

    def _try_reserve(self, unit_id, request_id):
        try:
            self.units.reserve(unit_id, request_id)
        except ApiError as exc:
            logger.info('Skipping unit %s for request %s: %s', unit_id, request_id, exc.message)
            return False
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Reserving unit %s for request %s failed', unit_id, request_id)
            return False
        return True

    # -- request bookkeeping -----------------------------------------------

    def _finish(self, request_id, result, actor):
        blood_request = db.session.get(BloodRequest, request_id)
        if result.reserved_unit_ids:
            linked = {unit.id for unit in blood_request.units}
            new_ids = [unit_id for unit_id in result.reserved_unit_ids if unit_id not in linked]
            claimed = self._claim_slots(request_id, len(new_ids))
            if claimed < len(new_ids):
                self._release_surplus(request_id, result, new_ids[claimed:])

        blood_request = db.session.get(BloodRequest, request_id)
        if result.reserved_unit_ids:
            newly_fulfilled = self._attach_units(blood_request, result.reserved_unit_ids)
            if newly_fulfilled:
                fire_and_forget(
                    f'notify request {request_id} fulfilled',
                    self.notifier.notify_blood_request_fulfilled,
                    blood_request.requested_by,
                    blood_request.id,
                    blood_request.blood_group,
                    self._fulfilled_by_label(result.reserved_unit_ids),
                )
        result.request_status = blood_request.status

        fire_and_forget(
            'audit fulfillment', self.audit.log_activity,
            ActivityType.BLOOD_REQUEST_FULFILLED if result.outcome == OUTCOME_FULFILLED
            else ActivityType.INVENTORY_UPDATE,
            'Blood Request Fulfillment',
            f'{result.message} for request {request_id}',
            actor.user_id if actor else None,
            result.to_dict(),
        )

    def _claim_slots(self, request_id, wanted):
        """Add up to ``wanted`` to the request's fulfilled counter without
        passing ``units_required``. Returns how many were added."""
        while wanted > 0:
            try:
                count = (
                    BloodRequest.query
                    .filter(BloodRequest.id == request_id,
                            BloodRequest.units_fulfilled + wanted <= BloodRequest.units_required)
                    .update({BloodRequest.units_fulfilled: BloodRequest.units_fulfilled + wanted},
                            synchronize_session=False)
                )
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                raise
            if count:
                return wanted
            fulfilled, required = (
                db.session.query(BloodRequest.units_fulfilled, BloodRequest.units_required)
                .filter(BloodRequest.id == request_id)
                .one()
            )
            remaining = max(0, required - (fulfilled or 0))
            logger.info('Request %s has room for %d of %d new units', request_id, remaining, wanted)
            wanted = min(wanted - 1, remaining)
        return 0

    def _release_surplus(self, request_id, result, unit_ids):
        for unit_id in unit_ids:
            try:
                self.units.release(unit_id)
            except ApiError as exc:
                logger.warning('Could not release surplus unit %s of request %s: %s',
                               unit_id, request_id, exc.message)
                continue
            result.reserved_unit_ids.remove(unit_id)
            result.failed_unit_ids.append(unit_id)

    def _attach_units(self, blood_request, unit_ids):
        """Link units to the request. Returns True if this call moved the
        request to fulfilled."""
        linked = {unit.id for unit in blood_request.units}
        for unit in Donation.query.filter(Donation.id.in_(unit_ids)).all():
            if unit.id not in linked:
                blood_request.units.append(unit)
        try:
            db.session.commit()
            count = (
                BloodRequest.query
                .filter(BloodRequest.id == blood_request.id,
                        BloodRequest.status != RequestStatus.FULFILLED.value,
                        BloodRequest.units_fulfilled >= BloodRequest.units_required)
                .update({BloodRequest.status: RequestStatus.FULFILLED.value},
                        synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return count == 1

    def _fulfilled_by_label(self, unit_ids):
        names = []
        for unit_id in unit_ids:
            unit = self.inventory.get_unit(unit_id)
            bank = self.profiles.find_blood_bank_by_id(unit.blood_bank_id) if unit else None
            if bank and bank.name not in names:
                names.append(bank.name)
        return ', '.join(names) or 'blood bank inventory'
