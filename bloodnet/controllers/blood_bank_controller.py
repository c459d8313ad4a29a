from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from bloodnet.controllers import error_response
from bloodnet.controllers.donor_controller import location_args
from bloodnet.errors import ApiError
from bloodnet.services import get_services

# Define Blueprint for blood bank lookups
blood_bank_bp = Blueprint('blood_bank_bp', __name__)


# GET active blood banks near a point, nearest first
@blood_bank_bp.route('/nearby', methods=['GET'])
@jwt_required()
def get_nearby_blood_banks():
    try:
        point, radius = location_args(50)
        banks = get_services().locator.nearby_blood_banks(point, radius)
        return jsonify([
            dict(bank.to_dict(), distanceKm=round(distance, 2)) for bank, distance in banks
        ]), 200
    except ApiError as e:
        return error_response(e)
