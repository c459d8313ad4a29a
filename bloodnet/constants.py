from enum import Enum


class DonationStatus(str, Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'
    DEFERRED = 'deferred'
    PENDING = 'pending'
    FAILED = 'failed'


class BloodUnitStatus(str, Enum):
    """Lifecycle of a collected unit once its donation is completed"""
    IN_INVENTORY = 'in_inventory'
    RESERVED = 'reserved'
    DISPATCHED = 'dispatched'
    USED = 'used'
    EXPIRED = 'expired'
    DISCARDED = 'discarded'
    QUARANTINED = 'quarantined'


class DonationType(str, Enum):
    WHOLE_BLOOD = 'whole_blood'
    PLATELETS = 'platelets'
    PLASMA = 'plasma'
    RED_CELLS = 'red_cells'
    WHITE_CELLS = 'white_cells'
    STEM_CELLS = 'stem_cells'
    BONE_MARROW = 'bone_marrow'
    CORD_BLOOD = 'cord_blood'
    OTHER = 'other'


class RequestStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    FULFILLED = 'fulfilled'
    CANCELED = 'canceled'
    EXPIRED = 'expired'


class RequestPriority(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'


# Higher rank sorts first when listing urgent requests
PRIORITY_RANK = {
    RequestPriority.LOW.value: 0,
    RequestPriority.MEDIUM.value: 1,
    RequestPriority.HIGH.value: 2,
    RequestPriority.CRITICAL.value: 3,
}


class ScheduleStatus(str, Enum):
    SCHEDULED = 'scheduled'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'
    NO_SHOW = 'no_show'


class Role(str, Enum):
    ADMIN = 'admin'
    DONOR = 'donor'
    BLOOD_BANK = 'blood_bank'
    MEDICAL_INSTITUTION = 'medical_institution'


class ActivityType(str, Enum):
    INVENTORY_UPDATE = 'inventory_update'
    ALERT = 'alert'
    BLOOD_REQUEST_CREATED = 'blood_request_created'
    BLOOD_REQUEST_FULFILLED = 'blood_request_fulfilled'
    BLOOD_UNIT_STATUS_CHANGED = 'blood_unit_status_changed'
    DONATION_COMPLETED = 'donation_completed'
    DONATION_SCHEDULED = 'donation_scheduled'
    DONATION_CANCELLED = 'donation_cancelled'


def values(enum_cls):
    return [member.value for member in enum_cls]
