from bloodnet.extensions import db
from bloodnet.utils import utcnow


class BloodBank(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, index=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    city = db.Column(db.String(50))
    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    __table_args__ = (
        db.Index('ix_blood_bank_location', 'latitude', 'longitude'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'city': self.city,
            'email': self.email,
            'phone': self.phone,
            'location': [self.longitude, self.latitude] if self.latitude is not None else None,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<BloodBank {self.name}>'
