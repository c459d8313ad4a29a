"""Ownership checks run before any blood unit state change."""
from dataclasses import dataclass

from bloodnet.constants import Role
from bloodnet.errors import AuthorizationError


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


def authorize_unit_access(actor, unit, profiles):
    """Donors act on their own units, blood banks on their own inventory,
    institutions on units dispatched to them. Admins are unconstrained."""
    if actor is None or actor.is_admin:
        return
    if actor.role == Role.DONOR:
        donor = profiles.find_donor_by_user(actor.user_id)
        if donor is not None and donor.id == unit.donor_id:
            return
    elif actor.role == Role.BLOOD_BANK:
        bank = profiles.find_blood_bank_by_user(actor.user_id)
        if bank is not None and bank.id == unit.blood_bank_id:
            return
    elif actor.role == Role.MEDICAL_INSTITUTION:
        institution = profiles.find_institution_by_user(actor.user_id)
        if institution is not None and unit.dispatched_to in (str(institution.id), institution.name):
            return
    raise AuthorizationError(f'Not allowed to manage blood unit {unit.id}')


def authorize_request_access(actor, blood_request, profiles):
    """Institutions act on their own requests; blood banks and admins on any."""
    if actor is None or actor.is_admin or actor.role == Role.BLOOD_BANK:
        return
    if actor.role == Role.MEDICAL_INSTITUTION:
        institution = profiles.find_institution_by_user(actor.user_id)
        if institution is not None and institution.id == blood_request.institution_id:
            return
    raise AuthorizationError(f'Not allowed to fulfil blood request {blood_request.id}')
