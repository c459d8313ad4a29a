from bloodnet.constants import ActivityType, values
from bloodnet.extensions import db
from bloodnet.utils import utcnow


class ActivityLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    activity_type = db.Column(db.Enum(*values(ActivityType), name='activity_type'), nullable=False)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text)
    user_id = db.Column(db.String(64))
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'activityType': self.activity_type,
            'title': self.title,
            'description': self.description,
            'userId': self.user_id,
            'metadata': self.details,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
