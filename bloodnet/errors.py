"""Error taxonomy shared by services and blueprints.

Every error is a werkzeug ``HTTPException`` so Flask maps it to the right
status code, and carries enough structure for a JSON body.
"""
from werkzeug.exceptions import HTTPException


class ApiError(HTTPException):
    code = 400

    def __init__(self, message, field=None):
        super().__init__(description=message)
        self.message = message
        self.field = field

    def to_dict(self):
        body = {'error': self.message}
        if self.field:
            body['field'] = self.field
        return body


class ValidationError(ApiError):
    code = 400


class AuthorizationError(ApiError):
    code = 403


class NotFoundError(ApiError):
    code = 404


class InvalidTransitionError(ApiError):
    code = 409

    def __init__(self, current, requested, message=None):
        current_label = current if current is not None else 'none'
        super().__init__(
            message or f'Cannot change blood unit status from {current_label} to {requested}',
            field='unitStatus',
        )
        self.current = current
        self.requested = requested

    def to_dict(self):
        body = super().to_dict()
        body['currentStatus'] = self.current
        body['requestedStatus'] = self.requested
        return body


class ConflictError(ApiError):
    code = 409

    DONOR_CONFLICT = 'donor_conflict'
    CAPACITY_CONFLICT = 'capacity_conflict'
    UNIT_UNAVAILABLE = 'unit_unavailable'

    def __init__(self, message, cause, field=None):
        super().__init__(message, field=field)
        self.cause = cause

    def to_dict(self):
        body = super().to_dict()
        body['cause'] = self.cause
        return body


class UnitUnavailableError(ConflictError):
    def __init__(self, unit_id):
        super().__init__(
            f'Blood unit {unit_id} is no longer available',
            ConflictError.UNIT_UNAVAILABLE,
            field='unitId',
        )
        self.unit_id = unit_id
