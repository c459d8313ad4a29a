from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.auth import current_actor, roles_required
from bloodnet.controllers import database_error, error_response, json_body
from bloodnet.constants import Role
from bloodnet.errors import ApiError, UnitUnavailableError, ValidationError
from bloodnet.services import get_services
from bloodnet.services.compatibility import normalize_rh, normalize_type
from bloodnet.utils import parse_datetime, parse_id

# Define Blueprint for donations and the blood units they produce
donation_bp = Blueprint('donation_bp', __name__)

UNIT_MANAGERS = (Role.ADMIN, Role.BLOOD_BANK)


def _blood_group(data):
    blood_type = normalize_type(data.get('bloodType'))
    rh_factor = normalize_rh(data.get('rhFactor'))
    if blood_type is None or rh_factor is None:
        raise ValidationError('bloodType and rhFactor must form a valid ABO/Rh group', field='bloodType')
    return blood_type, rh_factor


def _own_bank_id(actor, requested_bank_id):
    """Blood bank staff only ever draw from their own inventory."""
    if actor is not None and actor.role == Role.BLOOD_BANK:
        bank = get_services().profiles.find_blood_bank_by_user(actor.user_id)
        if bank is None:
            raise ValidationError('No blood bank profile for this user', field='bloodBank')
        return bank.id
    if requested_bank_id is None:
        return None
    return parse_id(requested_bank_id, 'bloodBank')


# POST record a donation
@donation_bp.route('/', methods=['POST'])
@roles_required(*UNIT_MANAGERS)
def create_donation():
    try:
        donation = get_services().units.record_donation(json_body(), current_actor())
        return jsonify(donation.to_dict()), 201
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('record donation')


# GET a single donation
@donation_bp.route('/<int:id>', methods=['GET'])
@jwt_required()
def get_donation(id):
    try:
        return jsonify(get_services().units.get_unit(id).to_dict()), 200
    except ApiError as e:
        return error_response(e)


# PATCH mark a scheduled donation as completed
@donation_bp.route('/<int:id>/complete', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def complete_donation(id):
    try:
        donation = get_services().units.complete_donation(id, current_actor())
        return jsonify(donation.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('complete donation')


# GET blood units by status
@donation_bp.route('/blood-units/status/<status>', methods=['GET'])
@roles_required(*UNIT_MANAGERS)
def get_units_by_status(status):
    try:
        bank_id = _own_bank_id(current_actor(), request.args.get('bloodBank'))
        units = get_services().units.units_by_status(status, bank_id)
        return jsonify([unit.to_dict() for unit in units]), 200
    except ApiError as e:
        return error_response(e)


@donation_bp.route('/blood-units/expired', methods=['GET'])
@roles_required(*UNIT_MANAGERS)
def get_expired_units():
    units = get_services().units.expired_units()
    return jsonify([unit.to_dict() for unit in units]), 200


@donation_bp.route('/blood-units/expiring-soon', methods=['GET'])
@roles_required(*UNIT_MANAGERS)
def get_expiring_units():
    try:
        days = request.args.get('days', 3, type=int)
        units = get_services().units.units_expiring_soon(days)
        return jsonify([unit.to_dict() for unit in units]), 200
    except ApiError as e:
        return error_response(e)


# POST run the expiry sweep on demand
@donation_bp.route('/blood-units/process-expired', methods=['POST'])
@roles_required(Role.ADMIN)
def process_expired_units():
    result = get_services().sweeper.process_expired()
    return jsonify(result.to_dict()), 200


@donation_bp.route('/<int:id>/tracking', methods=['GET'])
@jwt_required()
def get_tracking_info(id):
    try:
        return jsonify(get_services().units.tracking_info(id, current_actor())), 200
    except ApiError as e:
        return error_response(e)


# PATCH generic unit status update
@donation_bp.route('/<int:id>/status', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def update_unit_status(id):
    try:
        data = json_body()
        if 'unitStatus' not in data:
            raise ValidationError('Missing required field: unitStatus', field='unitStatus')
        unit = get_services().units.change_status(
            id, data['unitStatus'], actor=current_actor(),
            reserved_for_request_id=data.get('reservedForRequest'),
            dispatched_to=data.get('dispatchedTo'),
            dispatched_at=parse_datetime(data.get('dispatchedAt'), 'dispatchedAt'),
            used_for=data.get('usedFor'),
            used_at=parse_datetime(data.get('usedAt'), 'usedAt'),
            discard_reason=data.get('discardReason'),
            discarded_at=parse_datetime(data.get('discardedAt'), 'discardedAt'),
        )
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('update blood unit status')


@donation_bp.route('/<int:id>/dispatch', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def dispatch_unit(id):
    try:
        data = json_body()
        request_id = data.get('requestId')
        unit = get_services().units.dispatch(
            id, data.get('dispatchedTo'),
            dispatched_at=parse_datetime(data.get('dispatchedAt'), 'dispatchedAt'),
            request_id=parse_id(request_id, 'requestId') if request_id is not None else None,
            actor=current_actor(),
        )
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('dispatch blood unit')


@donation_bp.route('/<int:id>/use', methods=['PATCH'])
@jwt_required()
def use_unit(id):
    try:
        data = json_body()
        unit = get_services().units.use(
            id, data.get('usedFor'),
            used_at=parse_datetime(data.get('usedAt'), 'usedAt'),
            actor=current_actor(),
        )
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('mark blood unit used')


@donation_bp.route('/<int:id>/discard', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def discard_unit(id):
    try:
        data = json_body()
        unit = get_services().units.discard(
            id, data.get('discardReason'),
            discarded_at=parse_datetime(data.get('discardedAt'), 'discardedAt'),
            actor=current_actor(),
        )
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('discard blood unit')


@donation_bp.route('/<int:id>/expire', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def expire_unit(id):
    try:
        unit = get_services().units.expire(id, actor=current_actor())
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('expire blood unit')


@donation_bp.route('/<int:id>/reserve/<int:request_id>', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def reserve_unit(id, request_id):
    try:
        result = get_services().fulfillment.reserve_units(request_id, [id], actor=current_actor())
        if not result.success:
            raise UnitUnavailableError(id)
        return jsonify(result.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('reserve blood unit')


@donation_bp.route('/<int:id>/release', methods=['PATCH'])
@roles_required(*UNIT_MANAGERS)
def release_unit(id):
    try:
        unit = get_services().units.release(id, actor=current_actor())
        return jsonify(unit.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('release blood unit')


# POST list compatible in-inventory units, oldest first
@donation_bp.route('/suitable-units', methods=['POST'])
@roles_required(*UNIT_MANAGERS, Role.MEDICAL_INSTITUTION)
def find_suitable_units():
    try:
        data = json_body()
        blood_type, rh_factor = _blood_group(data)
        bank_id = data.get('bloodBank')
        units = get_services().fulfillment.find_suitable_units(
            blood_type, rh_factor, data.get('unitsNeeded'),
            blood_bank_id=parse_id(bank_id, 'bloodBank') if bank_id is not None else None,
        )
        return jsonify([unit.to_dict() for unit in units]), 200
    except ApiError as e:
        return error_response(e)


@donation_bp.route('/auto-fulfill-request/<int:request_id>', methods=['POST'])
@roles_required(*UNIT_MANAGERS)
def auto_fulfill_request(request_id):
    try:
        data = json_body()
        actor = current_actor()
        blood_type, rh_factor = _blood_group(data)
        result = get_services().fulfillment.auto_fulfill(
            request_id, blood_type, rh_factor, data.get('unitsNeeded'),
            blood_bank_id=_own_bank_id(actor, data.get('bloodBank')),
            actor=actor,
        )
        return jsonify(result.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('auto-fulfill blood request')


@donation_bp.route('/reserve-multiple-units', methods=['POST'])
@roles_required(*UNIT_MANAGERS)
def reserve_multiple_units():
    try:
        data = json_body()
        unit_ids = data.get('donationIds')
        if isinstance(unit_ids, list):
            unit_ids = [parse_id(unit_id, 'donationIds') for unit_id in unit_ids]
        result = get_services().fulfillment.reserve_units(
            parse_id(data.get('requestId'), 'requestId'), unit_ids, actor=current_actor())
        return jsonify(result.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('reserve blood units')
