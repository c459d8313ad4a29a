from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.auth import current_actor, roles_required
from bloodnet.constants import Role
from bloodnet.controllers import database_error, error_response, json_body
from bloodnet.controllers.donor_controller import blood_group_arg, location_args
from bloodnet.errors import ApiError, ValidationError
from bloodnet.services import get_services

# Define Blueprint for blood requests posted by medical institutions
blood_request_bp = Blueprint('blood_request_bp', __name__)


# POST a new blood request; nearby donors and blood banks are alerted
@blood_request_bp.route('/', methods=['POST'])
@roles_required(Role.ADMIN, Role.MEDICAL_INSTITUTION)
def create_blood_request():
    try:
        blood_request = get_services().requests.create(json_body(), current_actor())
        return jsonify(blood_request.to_dict()), 201
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('create blood request')


@blood_request_bp.route('/urgent', methods=['GET'])
@jwt_required()
def get_urgent_requests():
    blood_requests = get_services().requests.urgent()
    return jsonify([r.to_dict() for r in blood_requests]), 200


# GET pending requests near a point, e.g. ?lat=0.31&lng=32.58&radius=50&bloodType=A%2B
@blood_request_bp.route('/nearby', methods=['GET'])
@roles_required(Role.ADMIN, Role.MEDICAL_INSTITUTION, Role.DONOR)
def get_nearby_requests():
    try:
        point, radius = location_args(50)
        blood_requests = get_services().locator.nearby_requests(point, radius, blood_group_arg())
        return jsonify([
            dict(r.to_dict(), distanceKm=round(distance, 2)) for r, distance in blood_requests
        ]), 200
    except ApiError as e:
        return error_response(e)


@blood_request_bp.route('/<int:id>', methods=['GET'])
@jwt_required()
def get_blood_request(id):
    try:
        return jsonify(get_services().requests.get(id).to_dict()), 200
    except ApiError as e:
        return error_response(e)


@blood_request_bp.route('/<int:id>/status', methods=['PATCH'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK, Role.MEDICAL_INSTITUTION)
def update_blood_request_status(id):
    try:
        data = json_body()
        if 'status' not in data:
            raise ValidationError('Missing required field: status', field='status')
        blood_request = get_services().requests.update_status(id, data['status'], current_actor())
        return jsonify(blood_request.to_dict()), 200
    except ApiError as e:
        return error_response(e)
    except SQLAlchemyError:
        return database_error('update blood request status')
