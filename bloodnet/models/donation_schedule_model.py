from bloodnet.constants import ScheduleStatus, values
from bloodnet.extensions import db
from bloodnet.utils import utcnow


class DonationSchedule(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('donor.id'), nullable=False)
    blood_bank_id = db.Column(db.Integer, db.ForeignKey('blood_bank.id'), nullable=False)
    scheduled_date = db.Column(db.Date, nullable=False)
    time_slot = db.Column(db.String(11), nullable=False)  # e.g. "09:00-10:00"
    status = db.Column(
        db.Enum(*values(ScheduleStatus), name='schedule_status'),
        nullable=False,
        default=ScheduleStatus.SCHEDULED.value,
    )
    donation_type = db.Column(db.String(30))
    send_reminders = db.Column(db.Boolean, default=True, nullable=False)
    scheduled_by = db.Column(db.String(64))
    confirmed_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)
    cancellation_reason = db.Column(db.String(255))
    completed_donation_id = db.Column(db.Integer, db.ForeignKey('donation.id'))
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)

    donor = db.relationship('Donor')
    blood_bank = db.relationship('BloodBank')

    __table_args__ = (
        db.Index('ix_schedule_donor_date', 'donor_id', 'scheduled_date'),
        db.Index('ix_schedule_bank_date', 'blood_bank_id', 'scheduled_date'),
        db.Index('ix_schedule_status_date', 'status', 'scheduled_date'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'donorId': self.donor_id,
            'bloodBankId': self.blood_bank_id,
            'scheduledDate': self.scheduled_date.isoformat(),
            'timeSlot': self.time_slot,
            'status': self.status,
            'donationType': self.donation_type,
            'sendReminders': self.send_reminders,
            'confirmedAt': self.confirmed_at.isoformat() if self.confirmed_at else None,
            'cancelledAt': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'cancellationReason': self.cancellation_reason,
            'completedDonation': self.completed_donation_id,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<DonationSchedule {self.id} {self.scheduled_date} {self.time_slot}>'
