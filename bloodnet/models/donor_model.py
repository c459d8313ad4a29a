from bloodnet.extensions import db
from bloodnet.utils import utcnow


class Donor(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20))
    email = db.Column(db.String(100))

    # Set by the first eligible donation, then treated as immutable for matching
    blood_type = db.Column(db.String(2))
    rh_factor = db.Column(db.String(1))

    is_eligible = db.Column(db.Boolean, default=True, nullable=False)
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    max_travel_distance = db.Column(db.Float)  # km

    total_donations = db.Column(db.Integer, default=0, nullable=False)
    last_donation_date = db.Column(db.DateTime)
    next_eligible_date = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    donations = db.relationship('Donation', back_populates='donor', lazy=True)

    __table_args__ = (
        db.Index('ix_donor_location', 'latitude', 'longitude'),
    )

    @property
    def blood_group(self):
        if not self.blood_type or not self.rh_factor:
            return None
        return f'{self.blood_type}{self.rh_factor}'

    @property
    def has_location(self):
        return self.latitude is not None and self.longitude is not None

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'name': self.name,
            'phone': self.phone,
            'email': self.email,
            'bloodType': self.blood_type,
            'rhFactor': self.rh_factor,
            'isEligible': self.is_eligible,
            'location': [self.longitude, self.latitude] if self.has_location else None,
            'maxTravelDistance': self.max_travel_distance,
            'totalDonations': self.total_donations,
            'lastDonationDate': self.last_donation_date.isoformat() if self.last_donation_date else None,
            'nextEligibleDate': self.next_eligible_date.isoformat() if self.next_eligible_date else None,
        }

    def __repr__(self):
        return f'<Donor {self.name}>'
