from bloodnet.extensions import db
from bloodnet.utils import utcnow


class MedicalInstitution(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    city = db.Column(db.String(50))
    phone = db.Column(db.String(20))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    requests = db.relationship('BloodRequest', back_populates='institution', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'city': self.city,
            'phone': self.phone,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<MedicalInstitution {self.name}>'
