from bloodnet.constants import (
    BloodUnitStatus,
    DonationStatus,
    DonationType,
    values,
)
from bloodnet.extensions import db
from bloodnet.utils import utcnow


class Donation(db.Model):
    """A donation record; once completed it is tracked as one blood unit."""

    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('donor.id'), nullable=False, index=True)
    blood_bank_id = db.Column(db.Integer, db.ForeignKey('blood_bank.id'), nullable=False, index=True)

    # Copied from the donor when the record is created, never edited afterwards
    blood_type = db.Column(db.String(2), nullable=False)
    rh_factor = db.Column(db.String(1), nullable=False)

    donation_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    status = db.Column(
        db.Enum(*values(DonationStatus), name='donation_status'),
        nullable=False,
        default=DonationStatus.SCHEDULED.value,
    )
    volume_collected = db.Column(db.Integer)  # ml
    donation_type = db.Column(db.Enum(*values(DonationType), name='donation_type'))
    bag_number = db.Column(db.String(40))
    next_eligible_donation_date = db.Column(db.DateTime)
    notes = db.Column(db.Text)

    # Unit tracking
    unit_status = db.Column(db.Enum(*values(BloodUnitStatus), name='blood_unit_status'), index=True)
    expiry_date = db.Column(db.DateTime, index=True)
    reserved_for_request_id = db.Column(db.Integer, index=True)
    dispatched_at = db.Column(db.DateTime)
    dispatched_to = db.Column(db.String(120))
    used_for = db.Column(db.String(120))
    used_at = db.Column(db.DateTime)
    discard_reason = db.Column(db.String(255))
    discarded_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    donor = db.relationship('Donor', back_populates='donations')
    blood_bank = db.relationship('BloodBank')

    __table_args__ = (
        db.Index('ix_donation_donor_date', 'donor_id', 'donation_date'),
        db.Index('ix_donation_group', 'blood_type', 'rh_factor'),
    )

    @property
    def blood_group(self):
        return f'{self.blood_type}{self.rh_factor}'

    @property
    def is_completed(self):
        return self.status == DonationStatus.COMPLETED.value

    def to_dict(self):
        return {
            'id': self.id,
            'donorId': self.donor_id,
            'bloodBankId': self.blood_bank_id,
            'bloodType': self.blood_type,
            'rhFactor': self.rh_factor,
            'donationDate': self.donation_date.isoformat() if self.donation_date else None,
            'status': self.status,
            'volumeCollected': self.volume_collected,
            'donationType': self.donation_type,
            'bagNumber': self.bag_number,
            'unitStatus': self.unit_status,
            'expiryDate': self.expiry_date.isoformat() if self.expiry_date else None,
            'reservedForRequest': self.reserved_for_request_id,
            'dispatchedAt': self.dispatched_at.isoformat() if self.dispatched_at else None,
            'dispatchedTo': self.dispatched_to,
            'usedFor': self.used_for,
            'usedAt': self.used_at.isoformat() if self.used_at else None,
            'discardReason': self.discard_reason,
            'discardedAt': self.discarded_at.isoformat() if self.discarded_at else None,
        }

    def __repr__(self):
        return f'<Donation {self.id} {self.blood_group} {self.unit_status}>'
