from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.auth import current_actor, roles_required
from bloodnet.constants import Role
from bloodnet.controllers import database_error, error_response, json_body
from bloodnet.errors import ApiError, ValidationError
from bloodnet.services import get_services

# Define Blueprint for donation appointments
donation_schedule_bp = Blueprint('donation_schedule_bp', __name__)

SCHEDULERS = (Role.ADMIN, Role.BLOOD_BANK, Role.DONOR)


# POST book an appointment; double bookings are rejected with 409
@donation_schedule_bp.route('/', methods=['POST'])
@roles_required(*SCHEDULERS)
def create_schedule():
    try:
        schedule = get_services().schedules.create(json_body(), current_actor())
        return jsonify(schedule.to_dict()), 201
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('create donation schedule')


@donation_schedule_bp.route('/upcoming', methods=['GET'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK)
def get_upcoming_schedules():
    try:
        hours = request.args.get('hours', 24, type=int)
        if hours is None or hours <= 0:
            raise ValidationError('hours must be a positive integer', field='hours')
        schedules = get_services().schedules.upcoming(hours)
        return jsonify([s.to_dict() for s in schedules]), 200
    except ApiError as e:
        return error_response(e)


@donation_schedule_bp.route('/stats', methods=['GET'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK)
def get_schedule_stats():
    counts = get_services().schedules.stats(request.args.get('bloodBank', type=int))
    return jsonify(counts), 200


@donation_schedule_bp.route('/<int:id>', methods=['GET'])
@jwt_required()
def get_schedule(id):
    try:
        return jsonify(get_services().schedules.get(id).to_dict()), 200
    except ApiError as e:
        return error_response(e)


# PATCH reschedule or change status
@donation_schedule_bp.route('/<int:id>', methods=['PATCH'])
@roles_required(*SCHEDULERS)
def update_schedule(id):
    try:
        schedule = get_services().schedules.update(id, json_body(), current_actor())
        return jsonify(schedule.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('update donation schedule')


@donation_schedule_bp.route('/<int:id>/confirm', methods=['PATCH'])
@roles_required(*SCHEDULERS)
def confirm_schedule(id):
    try:
        schedule = get_services().schedules.confirm(id, current_actor())
        return jsonify(schedule.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('confirm donation schedule')


@donation_schedule_bp.route('/<int:id>/cancel', methods=['PATCH'])
@roles_required(*SCHEDULERS)
def cancel_schedule(id):
    try:
        data = request.get_json(silent=True)
        reason = data.get('reason') if isinstance(data, dict) else None
        schedule = get_services().schedules.cancel(id, reason, current_actor())
        return jsonify(schedule.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('cancel donation schedule')


@donation_schedule_bp.route('/<int:id>/complete', methods=['PATCH'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK)
def complete_schedule(id):
    try:
        data = json_body()
        schedule = get_services().schedules.complete(id, data.get('donationId'), current_actor())
        return jsonify(schedule.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('complete donation schedule')
