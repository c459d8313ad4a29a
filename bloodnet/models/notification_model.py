from bloodnet.extensions import db
from bloodnet.utils import utcnow


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipient_type = db.Column(
        db.Enum('donor', 'blood_bank', 'user', name='notification_recipient'),
        nullable=False,
    )
    recipient_id = db.Column(db.String(64), nullable=False, index=True)
    request_id = db.Column(db.Integer, db.ForeignKey('blood_request.id'))
    title = db.Column(db.String(120), nullable=False)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.Enum('Pending', 'Sent', 'Failed', name='notification_status'),
        default='Pending',
        nullable=False,
    )
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'recipientType': self.recipient_type,
            'recipientId': self.recipient_id,
            'requestId': self.request_id,
            'title': self.title,
            'message': self.message,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
