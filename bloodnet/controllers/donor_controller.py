from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from bloodnet.auth import current_actor, roles_required
from bloodnet.constants import Role
from bloodnet.controllers import error_response
from bloodnet.errors import ApiError, ValidationError
from bloodnet.services import get_services
from bloodnet.services.compatibility import parse_blood_group

# Define Blueprint for donor lookups
donor_bp = Blueprint('donor_bp', __name__)


def location_args(default_radius):
    """``lat``, ``lng`` and ``radius`` (km) from the query string."""
    latitude = request.args.get('lat', type=float)
    longitude = request.args.get('lng', type=float)
    if latitude is None or longitude is None:
        raise ValidationError('lat and lng query parameters are required', field='lat')
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError('lat/lng are out of range', field='lat')
    radius = request.args.get('radius', default_radius, type=float)
    if radius is None or radius <= 0:
        raise ValidationError('radius must be a positive number of kilometres', field='radius')
    return (latitude, longitude), radius


def blood_group_arg():
    """Optional ``bloodType`` token such as ``O-`` from the query string."""
    token = request.args.get('bloodType')
    if not token:
        return None
    group = parse_blood_group(token)
    if group is None:
        raise ValidationError(f'Invalid blood type: {token}', field='bloodType')
    return group


# GET eligible donors near a point, e.g. ?lat=0.31&lng=32.58&radius=10&bloodType=O%2B
@donor_bp.route('/nearby', methods=['GET'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK, Role.MEDICAL_INSTITUTION)
def get_nearby_donors():
    try:
        point, radius = location_args(10)
        group = blood_group_arg()
        blood_groups = {group} if group else None
        donors = get_services().locator.nearby_donors(point, radius, blood_groups)
        return jsonify([
            dict(donor.to_dict(), distanceKm=round(distance, 2)) for donor, distance in donors
        ]), 200
    except ApiError as e:
        return error_response(e)


# GET open blood requests this donor could help with
@donor_bp.route('/<int:id>/blood-requests', methods=['GET'])
@jwt_required()
def get_requests_for_donor(id):
    try:
        request_filter, blood_requests = get_services().requests.open_requests_for_donor(id)
        return jsonify({
            'filter': request_filter.to_dict(),
            'requests': [r.to_dict() for r in blood_requests],
        }), 200
    except ApiError as e:
        return error_response(e)


# GET totals and history of a donor's completed donations
@donor_bp.route('/<int:id>/donations/stats', methods=['GET'])
@roles_required(Role.ADMIN, Role.BLOOD_BANK, Role.DONOR)
def get_donor_stats(id):
    try:
        return jsonify(get_services().units.donor_stats(id, current_actor())), 200
    except ApiError as e:
        return error_response(e)
