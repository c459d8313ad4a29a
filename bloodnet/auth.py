from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from bloodnet.constants import Role
from bloodnet.errors import AuthorizationError
from bloodnet.services.access import Actor


def current_actor():
    """The caller as an Actor, or None when no token was sent.

    A signed token without a recognised ``role`` claim raises
    AuthorizationError; ``None`` is reserved for in-process callers.
    """
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        role = Role(get_jwt().get('role'))
    except ValueError:
        raise AuthorizationError('Token carries no recognised role', field='role')
    return Actor(user_id=str(identity), role=role)


def roles_required(*roles):
    """Require a JWT whose ``role`` claim is one of ``roles``."""
    allowed = {Role(r) for r in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            try:
                actor = current_actor()
            except AuthorizationError:
                actor = None
            if actor is None or actor.role not in allowed:
                return jsonify({'error': 'Insufficient role for this operation'}), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
