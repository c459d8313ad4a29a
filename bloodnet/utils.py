from datetime import datetime, timezone

from bloodnet.errors import ValidationError


def utcnow():
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_datetime(value, field):
    """Parse an ISO-8601 string from a request payload.

    Returns None for a missing value. Timezone-aware input is converted to
    naive UTC.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            raise ValidationError(f'{field} must be an ISO-8601 date-time', field=field)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_positive_int(value, field):
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(f'{field} must be an integer', field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field=field)
    if number <= 0:
        raise ValidationError(f'{field} must be greater than zero', field=field)
    return number


def parse_id(value, field):
    """Validate a numeric record id coming from a JSON body."""
    if isinstance(value, bool):
        raise ValidationError(f'Invalid {field} format: {value}', field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field} format: {value}', field=field)
    if number <= 0:
        raise ValidationError(f'Invalid {field} format: {value}', field=field)
    return number
