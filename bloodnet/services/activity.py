import logging
from datetime import date, datetime
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from bloodnet.extensions import db
from bloodnet.models import ActivityLog
from bloodnet.services.interfaces import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value


class SqlAuditLog(AuditLog):
    def log_activity(self, activity_type, title, description, user_id=None, metadata=None):
        entry = ActivityLog(
            activity_type=_jsonable(activity_type),
            title=title,
            description=description,
            user_id=str(user_id) if user_id is not None else 'system',
            details=_jsonable(metadata or {}),
        )
        try:
            db.session.add(entry)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        logger.debug('Activity logged: %s', title)
        return entry
