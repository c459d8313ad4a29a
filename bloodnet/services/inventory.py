import logging
from datetime import timedelta

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.constants import BloodUnitStatus, DonationStatus
from bloodnet.extensions import db
from bloodnet.models import Donation
from bloodnet.services.interfaces import InventoryStore
from bloodnet.services.unit_status import SWEEPABLE_STATUSES

logger = logging.getLogger(__name__)


def _status_value(status):
    if isinstance(status, BloodUnitStatus):
        return status.value
    return status


class SqlInventoryStore(InventoryStore):
    """Blood units backed by the ``donation`` table.

    Every query is restricted to completed donations.
    """

    def _completed(self):
        return Donation.query.filter(Donation.status == DonationStatus.COMPLETED.value)

    def get_unit(self, unit_id):
        return db.session.get(Donation, unit_id)

    def conditional_update(self, unit_id, expected_statuses, changes):
        expected = [_status_value(s) for s in expected_statuses]
        known = [s for s in expected if s is not None]
        clauses = []
        if known:
            clauses.append(Donation.unit_status.in_(known))
        if None in expected:
            clauses.append(Donation.unit_status.is_(None))
        if not clauses:
            return False

        values = {key: _status_value(value) if key == 'unit_status' else value
                  for key, value in changes.items()}
        try:
            count = (
                self._completed()
                .filter(Donation.id == unit_id, or_(*clauses))
                .update(values, synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        if not count:
            logger.info('Conditional update of unit %s skipped: status no longer in %s', unit_id, expected)
        return count == 1

    def find_by_status(self, status, blood_bank_id=None):
        query = self._completed().filter(Donation.unit_status == _status_value(status))
        if blood_bank_id is not None:
            query = query.filter(Donation.blood_bank_id == blood_bank_id)
        return query.order_by(Donation.donation_date.asc()).all()

    def find_expired(self, now):
        return (
            self._completed()
            .filter(
                Donation.unit_status.in_([s.value for s in SWEEPABLE_STATUSES]),
                Donation.expiry_date < now,
            )
            .order_by(Donation.expiry_date.asc())
            .all()
        )

    def find_expiring_soon(self, now, days):
        return (
            self._completed()
            .filter(
                Donation.unit_status.in_([s.value for s in SWEEPABLE_STATUSES]),
                Donation.expiry_date >= now,
                Donation.expiry_date <= now + timedelta(days=days),
            )
            .order_by(Donation.expiry_date.asc())
            .all()
        )

    def find_available(self, groups, now, blood_bank_id=None, limit=None):
        if not groups:
            return []
        group_clause = or_(*[
            and_(Donation.blood_type == blood_type, Donation.rh_factor == rh_factor)
            for blood_type, rh_factor in sorted(groups)
        ])
        query = self._completed().filter(
            Donation.unit_status == BloodUnitStatus.IN_INVENTORY.value,
            Donation.expiry_date >= now,
            group_clause,
        )
        if blood_bank_id is not None:
            query = query.filter(Donation.blood_bank_id == blood_bank_id)
        query = query.order_by(Donation.donation_date.asc(), Donation.id.asc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count_by_status(self, blood_bank_id=None):
        counts = {status.value: 0 for status in BloodUnitStatus}
        query = (
            db.session.query(Donation.unit_status, func.count(Donation.id))
            .filter(
                Donation.status == DonationStatus.COMPLETED.value,
                Donation.unit_status.isnot(None),
            )
        )
        if blood_bank_id is not None:
            query = query.filter(Donation.blood_bank_id == blood_bank_id)
        for status, count in query.group_by(Donation.unit_status).all():
            counts[status] = count
        return counts
