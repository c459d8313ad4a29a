import logging
from dataclasses import dataclass, field
from typing import List

from bloodnet.constants import ActivityType
from bloodnet.services.side_effects import fire_and_forget
from bloodnet.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    processed_count: int = 0
    total_expired_count: int = 0
    failed_unit_ids: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            'processedCount': self.processed_count,
            'totalExpiredCount': self.total_expired_count,
            'failedUnitIds': list(self.failed_unit_ids),
        }


class ExpirySweeper:
    """Retires expired units and reports units close to expiry."""

    def __init__(self, inventory, units, notifier, audit, warning_days=3):
        self.inventory = inventory
        self.units = units
        self.notifier = notifier
        self.audit = audit
        self.warning_days = warning_days

    def process_expired(self, now=None):
        now = now or utcnow()
        expired = self.inventory.find_expired(now)
        result = SweepResult(total_expired_count=len(expired))

        for unit in expired:
            try:
                self.units.expire(unit.id)
            except Exception:
                logger.exception('Could not expire blood unit %s', unit.id)
                result.failed_unit_ids.append(unit.id)
                continue
            result.processed_count += 1

        logger.info('Processed %d expired blood units out of %d total expired units',
                    result.processed_count, result.total_expired_count)
        if result.processed_count:
            logger.warning('%d blood units were marked as expired', result.processed_count)

        fire_and_forget(
            'audit expiry sweep', self.audit.log_activity,
            ActivityType.INVENTORY_UPDATE,
            'Expired Blood Units Processed',
            f'Automatically processed {result.processed_count} expired blood units',
            None,
            dict(result.to_dict(), processedAt=now),
        )
        return result

    def check_expiring(self, now=None, days=None):
        """Units expiring within the warning window, grouped by blood bank.

        Nothing is modified; each affected blood bank is alerted best-effort.
        """
        now = now or utcnow()
        days = self.warning_days if days is None else days
        expiring = self.inventory.find_expiring_soon(now, days)

        by_bank = {}
        for unit in expiring:
            by_bank.setdefault(unit.blood_bank_id, []).append(unit)

        if not expiring:
            return by_bank

        logger.warning('%d blood units are expiring within %d days', len(expiring), days)
        fire_and_forget(
            'audit expiring units', self.audit.log_activity,
            ActivityType.INVENTORY_UPDATE,
            'Blood Units Expiring Soon',
            f'{len(expiring)} blood units are expiring within {days} days',
            None,
            {
                'expiringCount': len(expiring),
                'checkedAt': now,
                'expiringUnits': [
                    {'id': u.id, 'bloodGroup': u.blood_group,
                     'expiryDate': u.expiry_date, 'bloodBank': u.blood_bank_id}
                    for u in expiring
                ],
            },
        )
        for bank_id, units in by_bank.items():
            fire_and_forget(f'alert blood bank {bank_id}', self.notifier.notify_expiring_units, bank_id, units)
        logger.info('Expiring units grouped by blood bank: %d blood banks affected', len(by_bank))
        return by_bank

    def inventory_report(self, now=None):
        """Unit counts per status, every status present even when zero."""
        now = now or utcnow()
        counts = self.inventory.count_by_status()
        fire_and_forget(
            'audit inventory report', self.audit.log_activity,
            ActivityType.INVENTORY_UPDATE,
            'Blood Inventory Report',
            'Inventory summary: ' + ', '.join(f'{n} {status}' for status, n in counts.items()),
            None,
            {'counts': counts, 'reportDate': now},
        )
        logger.info('Inventory report generated: %s', counts)
        return counts
