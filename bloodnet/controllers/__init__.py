"""Response helpers shared by the blueprints."""
import logging

from flask import request, jsonify

from bloodnet.errors import ValidationError
from bloodnet.extensions import db

logger = logging.getLogger(__name__)


def error_response(e):
    return jsonify(e.to_dict()), e.code


def database_error(action):
    db.session.rollback()
    logger.exception('Database error while trying to %s', action)
    return jsonify({'error': 'Database error occurred'}), 500


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('No input data provided')
    return data
