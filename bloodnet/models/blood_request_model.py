from bloodnet.constants import RequestPriority, RequestStatus, values
from bloodnet.extensions import db
from bloodnet.utils import utcnow

# Units linked to a request (reserved or dispatched against it)
blood_request_unit = db.Table(
    'blood_request_unit',
    db.Column('blood_request_id', db.Integer, db.ForeignKey('blood_request.id'), primary_key=True),
    db.Column('donation_id', db.Integer, db.ForeignKey('donation.id'), primary_key=True),
)


class BloodRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    institution_id = db.Column(db.Integer, db.ForeignKey('medical_institution.id'), nullable=False)
    requested_by = db.Column(db.String(64))

    blood_type = db.Column(db.String(2), nullable=False)
    rh_factor = db.Column(db.String(1), nullable=False)
    units_required = db.Column(db.Integer, nullable=False)
    units_fulfilled = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(
        db.Enum(*values(RequestStatus), name='request_status'),
        nullable=False,
        default=RequestStatus.PENDING.value,
    )
    priority = db.Column(
        db.Enum(*values(RequestPriority), name='request_priority'),
        nullable=False,
        default=RequestPriority.MEDIUM.value,
    )
    required_by = db.Column(db.DateTime, nullable=False)
    patient_condition = db.Column(db.String(255))
    notes = db.Column(db.Text)

    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    location_label = db.Column(db.String(120))

    notify_nearby_donors = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    institution = db.relationship('MedicalInstitution', back_populates='requests')
    units = db.relationship('Donation', secondary=blood_request_unit, lazy='selectin')

    __table_args__ = (
        db.Index('ix_blood_request_triage', 'status', 'required_by', 'priority'),
        db.Index('ix_blood_request_location', 'latitude', 'longitude'),
    )

    @property
    def blood_group(self):
        return f'{self.blood_type}{self.rh_factor}'

    @property
    def units_remaining(self):
        return max(0, self.units_required - (self.units_fulfilled or 0))

    @property
    def is_open(self):
        return self.status in (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)

    def to_dict(self):
        return {
            'id': self.id,
            'institutionId': self.institution_id,
            'requestedBy': self.requested_by,
            'bloodType': self.blood_type,
            'rhFactor': self.rh_factor,
            'unitsRequired': self.units_required,
            'unitsFulfilled': self.units_fulfilled,
            'status': self.status,
            'priority': self.priority,
            'requiredBy': self.required_by.isoformat() if self.required_by else None,
            'patientCondition': self.patient_condition,
            'notes': self.notes,
            'location': [self.longitude, self.latitude] if self.latitude is not None else None,
            'locationLabel': self.location_label,
            'donations': [unit.id for unit in self.units],
        }

    def __repr__(self):
        return f'<BloodRequest {self.id} {self.blood_group} x{self.units_required}>'
