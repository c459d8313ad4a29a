"""Blood unit lifecycle: recording donations and every status change.

All status writes go through ``BloodUnitService.change_status``, which checks
ownership, the completed-donation rule and the transition table, then writes
with a conditional update so concurrent writers cannot both win.
"""
import logging
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.constants import ActivityType, BloodUnitStatus, DonationStatus, DonationType, Role
from bloodnet.errors import AuthorizationError, NotFoundError, UnitUnavailableError, ValidationError
from bloodnet.extensions import db
from bloodnet.models import Donation
from bloodnet.services.compatibility import normalize_rh, normalize_type
from bloodnet.services.access import authorize_unit_access
from bloodnet.services.expiry import calculate_expiry
from bloodnet.services.side_effects import fire_and_forget
from bloodnet.services.unit_status import allowed_targets, coerce_status, validate_transition
from bloodnet.utils import parse_datetime, parse_id, utcnow

logger = logging.getLogger(__name__)

MAX_VOLUME_ML = 1000


def _require_text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required', field=field)
    return value.strip()


def _establish_group(donor, blood_type, rh_factor):
    """The first completed donation by an eligible donor sets their group."""
    if donor.blood_type and donor.rh_factor:
        return
    if donor.is_eligible and blood_type and rh_factor:
        donor.blood_type, donor.rh_factor = blood_type, rh_factor


class BloodUnitService:
    def __init__(self, inventory, profiles, audit):
        self.inventory = inventory
        self.profiles = profiles
        self.audit = audit

    # -- lookups ---------------------------------------------------------

    def get_unit(self, unit_id):
        unit = self.inventory.get_unit(unit_id)
        if unit is None:
            raise NotFoundError(f'Donation with ID {unit_id} not found', field='id')
        return unit

    def units_by_status(self, status, blood_bank_id=None):
        return self.inventory.find_by_status(coerce_status(status, field='status'), blood_bank_id)

    def expired_units(self, now=None):
        return self.inventory.find_expired(now or utcnow())

    def units_expiring_soon(self, days=3, now=None):
        if days < 0:
            raise ValidationError('days must not be negative', field='days')
        return self.inventory.find_expiring_soon(now or utcnow(), days)

    # -- donation recording ----------------------------------------------

    def record_donation(self, data, actor=None):
        donor_id = parse_id(data.get('donor'), 'donor')
        blood_bank_id = parse_id(data.get('bloodBank'), 'bloodBank')

        donor = self.profiles.find_donor_by_id(donor_id)
        if donor is None:
            raise NotFoundError(f'Donor with ID {donor_id} not found', field='donor')
        if self.profiles.find_blood_bank_by_id(blood_bank_id) is None:
            raise NotFoundError(f'Blood bank with ID {blood_bank_id} not found', field='bloodBank')

        status = data.get('status', DonationStatus.SCHEDULED.value)
        try:
            status = DonationStatus(status).value
        except ValueError:
            raise ValidationError(f'Unknown donation status: {status}', field='status')

        donation_type = data.get('donationType')
        if donation_type is not None:
            try:
                donation_type = DonationType(donation_type).value
            except ValueError:
                raise ValidationError(f'Unknown donation type: {donation_type}', field='donationType')

        volume = data.get('volumeCollected')
        if volume is not None:
            if isinstance(volume, bool) or not isinstance(volume, (int, float)) \
                    or (isinstance(volume, float) and not volume.is_integer()) \
                    or not 0 < volume <= MAX_VOLUME_ML:
                raise ValidationError(
                    f'volumeCollected must be a whole number of ml between 1 and {MAX_VOLUME_ML}',
                    field='volumeCollected',
                )
            volume = int(volume)

        blood_type, rh_factor = self._resolve_group(donor, data)
        donation_date = parse_datetime(data.get('donationDate'), 'donationDate') or utcnow()

        donation = Donation(
            donor_id=donor.id,
            blood_bank_id=blood_bank_id,
            blood_type=blood_type,
            rh_factor=rh_factor,
            donation_date=donation_date,
            status=status,
            volume_collected=volume,
            donation_type=donation_type,
            bag_number=data.get('bagNumber'),
            next_eligible_donation_date=parse_datetime(
                data.get('nextEligibleDonationDate'), 'nextEligibleDonationDate'),
            notes=data.get('notes'),
        )
        if status == DonationStatus.COMPLETED.value:
            self._enter_inventory(donation)

        try:
            db.session.add(donation)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if donation.is_completed:
            self._after_completion(donation, actor)
        return donation

    def complete_donation(self, unit_id, actor=None):
        donation = self.get_unit(unit_id)
        if actor is not None:
            authorize_unit_access(actor, donation, self.profiles)
        if donation.is_completed:
            raise ValidationError(f'Donation {unit_id} is already completed', field='status')

        donation.status = DonationStatus.COMPLETED.value
        self._enter_inventory(donation)
        donor = self.profiles.find_donor_by_id(donation.donor_id)
        if donor is not None:
            _establish_group(donor, donation.blood_type, donation.rh_factor)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        self._after_completion(donation, actor)
        return donation

    def _resolve_group(self, donor, data):
        """The donor's group wins; a payload group may only establish it."""
        given_type = data.get('bloodType')
        given_rh = data.get('rhFactor')
        if given_type is not None or given_rh is not None:
            given_type = normalize_type(given_type)
            given_rh = normalize_rh(given_rh)
            if given_type is None or given_rh is None:
                raise ValidationError('bloodType/rhFactor is not a valid ABO/Rh group', field='bloodType')

        if donor.blood_type and donor.rh_factor:
            if given_type and (given_type, given_rh) != (donor.blood_type, donor.rh_factor):
                raise ValidationError(
                    f'Donor blood group is {donor.blood_group}; it cannot be changed by a donation',
                    field='bloodType',
                )
            return donor.blood_type, donor.rh_factor

        if not given_type:
            raise ValidationError('Donor has no blood group on record; bloodType and rhFactor are required',
                                  field='bloodType')
        if data.get('status') == DonationStatus.COMPLETED.value:
            _establish_group(donor, given_type, given_rh)
        return given_type, given_rh

    def _enter_inventory(self, donation):
        validate_transition(donation.unit_status, BloodUnitStatus.IN_INVENTORY)
        donation.unit_status = BloodUnitStatus.IN_INVENTORY.value
        donation.expiry_date = calculate_expiry(donation.donation_date, donation.donation_type)

    def _after_completion(self, donation, actor):
        fire_and_forget('refresh donor counters', self._refresh_donor, donation)
        fire_and_forget(
            'audit donation completed', self.audit.log_activity,
            ActivityType.DONATION_COMPLETED,
            'Donation Completed',
            f'Donation {donation.id} ({donation.blood_group}) entered inventory',
            actor.user_id if actor else None,
            {'donationId': donation.id, 'donorId': donation.donor_id,
             'bloodBankId': donation.blood_bank_id, 'expiryDate': donation.expiry_date},
        )

    def _refresh_donor(self, donation):
        donor = self.profiles.find_donor_by_id(donation.donor_id)
        if donor is None:
            return
        total, last_date = (
            db.session.query(func.count(Donation.id), func.max(Donation.donation_date))
            .filter(Donation.donor_id == donor.id,
                    Donation.status == DonationStatus.COMPLETED.value)
            .one()
        )
        donor.total_donations = total
        if last_date is not None:
            donor.last_donation_date = last_date
        if donation.next_eligible_donation_date:
            donor.next_eligible_date = donation.next_eligible_donation_date
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def donor_stats(self, donor_id, actor=None):
        """Totals and history of a donor's completed donations, oldest first."""
        donor = self.profiles.find_donor_by_id(donor_id)
        if donor is None:
            raise NotFoundError(f'Donor with ID {donor_id} not found', field='donorId')
        if actor is not None and actor.role == Role.DONOR:
            own = self.profiles.find_donor_by_user(actor.user_id)
            if own is None or own.id != donor.id:
                raise AuthorizationError(f'Not allowed to view donor {donor_id}')

        donations = (
            Donation.query
            .filter(Donation.donor_id == donor.id,
                    Donation.status == DonationStatus.COMPLETED.value)
            .order_by(Donation.donation_date.asc(), Donation.id.asc())
            .all()
        )
        return {
            'donorId': donor.id,
            'totalDonations': len(donations),
            'volumeDonated': sum(d.volume_collected or 0 for d in donations),
            'firstDonation': donations[0].donation_date.isoformat() if donations else None,
            'lastDonation': donations[-1].donation_date.isoformat() if donations else None,
            'donationHistory': [
                {
                    'id': d.id,
                    'date': d.donation_date.isoformat() if d.donation_date else None,
                    'volume': d.volume_collected,
                    'type': d.donation_type,
                    'bloodBankId': d.blood_bank_id,
                    'status': d.status,
                }
                for d in donations
            ],
        }

    # -- status changes ---------------------------------------------------

    def change_status(self, unit_id, requested, actor=None, **details):
        """Move a unit to ``requested``.

        Raises AuthorizationError, ValidationError (donation not completed),
        InvalidTransitionError, or UnitUnavailableError when another writer
        changed the unit first.
        """
        unit = self.get_unit(unit_id)
        if actor is not None:
            authorize_unit_access(actor, unit, self.profiles)
        if not unit.is_completed:
            raise ValidationError(
                'Blood unit status can only be managed for completed donations',
                field='status',
            )

        current = unit.unit_status
        requested = validate_transition(current, requested)
        changes = self._changes_for(unit, requested, details)

        if not self.inventory.conditional_update(unit.id, [current], changes):
            raise UnitUnavailableError(unit.id)

        fire_and_forget(
            'audit unit status change', self.audit.log_activity,
            ActivityType.BLOOD_UNIT_STATUS_CHANGED,
            'Blood Unit Status Changed',
            f'Blood unit {unit.id} moved from {current or "none"} to {requested.value}',
            actor.user_id if actor else None,
            {'unitId': unit.id, 'previousStatus': current, 'newStatus': requested.value,
             'reservedForRequest': changes.get('reserved_for_request_id')},
        )
        return self.get_unit(unit.id)

    def _changes_for(self, unit, requested, details):
        now = utcnow()
        changes = {'unit_status': requested.value}
        S = BloodUnitStatus
        if requested == S.RESERVED:
            request_id = details.get('reserved_for_request_id')
            if request_id is None:
                raise ValidationError('reservedForRequest is required to reserve a unit',
                                      field='reservedForRequest')
            changes['reserved_for_request_id'] = request_id
        elif requested == S.IN_INVENTORY:
            changes['reserved_for_request_id'] = None
            if unit.expiry_date is None:
                changes['expiry_date'] = calculate_expiry(unit.donation_date, unit.donation_type)
        elif requested == S.DISPATCHED:
            changes['dispatched_to'] = details.get('dispatched_to')
            changes['dispatched_at'] = details.get('dispatched_at') or now
            if details.get('reserved_for_request_id') is not None:
                changes['reserved_for_request_id'] = details['reserved_for_request_id']
        elif requested == S.USED:
            changes['used_for'] = details.get('used_for')
            changes['used_at'] = details.get('used_at') or now
        elif requested == S.DISCARDED:
            changes['discard_reason'] = details.get('discard_reason')
            changes['discarded_at'] = details.get('discarded_at') or now
        return changes

    def dispatch(self, unit_id, dispatched_to, dispatched_at=None, request_id=None, actor=None):
        return self.change_status(
            unit_id, BloodUnitStatus.DISPATCHED, actor=actor,
            dispatched_to=_require_text(dispatched_to, 'dispatchedTo'),
            dispatched_at=dispatched_at,
            reserved_for_request_id=request_id,
        )

    def use(self, unit_id, used_for, used_at=None, actor=None):
        return self.change_status(
            unit_id, BloodUnitStatus.USED, actor=actor,
            used_for=_require_text(used_for, 'usedFor'),
            used_at=used_at,
        )

    def discard(self, unit_id, reason, discarded_at=None, actor=None):
        return self.change_status(
            unit_id, BloodUnitStatus.DISCARDED, actor=actor,
            discard_reason=_require_text(reason, 'discardReason'),
            discarded_at=discarded_at,
        )

    def expire(self, unit_id, actor=None):
        return self.change_status(unit_id, BloodUnitStatus.EXPIRED, actor=actor)

    def quarantine(self, unit_id, actor=None):
        return self.change_status(unit_id, BloodUnitStatus.QUARANTINED, actor=actor)

    def reserve(self, unit_id, request_id, actor=None):
        return self.change_status(
            unit_id, BloodUnitStatus.RESERVED, actor=actor,
            reserved_for_request_id=request_id,
        )

    def release(self, unit_id, actor=None):
        unit = self.get_unit(unit_id)
        if unit.unit_status != BloodUnitStatus.RESERVED.value:
            raise ValidationError(f'Blood unit {unit_id} is not reserved', field='unitStatus')
        return self.change_status(unit_id, BloodUnitStatus.IN_INVENTORY, actor=actor)

    # -- tracking ---------------------------------------------------------

    def tracking_info(self, unit_id, actor=None, now=None):
        unit = self.get_unit(unit_id)
        if actor is not None:
            authorize_unit_access(actor, unit, self.profiles)
        now = now or utcnow()

        days_until_expiry = None
        if unit.expiry_date is not None:
            days_until_expiry = (unit.expiry_date - now) // timedelta(days=1)

        return {
            'id': unit.id,
            'bloodType': unit.blood_type,
            'rhFactor': unit.rh_factor,
            'donationStatus': unit.status,
            'unitStatus': unit.unit_status,
            'allowedTransitions': sorted(s.value for s in allowed_targets(unit.unit_status))
            if unit.is_completed else [],
            'donationDate': unit.donation_date.isoformat() if unit.donation_date else None,
            'expiryDate': unit.expiry_date.isoformat() if unit.expiry_date else None,
            'daysUntilExpiry': days_until_expiry,
            'isExpired': unit.expiry_date is not None and unit.expiry_date < now,
            'reservedForRequest': unit.reserved_for_request_id,
            'dispatch': {
                'dispatchedTo': unit.dispatched_to,
                'dispatchedAt': unit.dispatched_at.isoformat() if unit.dispatched_at else None,
            },
            'usage': {
                'usedFor': unit.used_for,
                'usedAt': unit.used_at.isoformat() if unit.used_at else None,
            },
            'discard': {
                'discardReason': unit.discard_reason,
                'discardedAt': unit.discarded_at.isoformat() if unit.discarded_at else None,
            },
        }
