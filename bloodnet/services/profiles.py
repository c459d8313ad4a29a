from bloodnet.extensions import db
from bloodnet.models import BloodBank, Donor, MedicalInstitution
from bloodnet.services.interfaces import DonorLookup


class SqlProfileLookup(DonorLookup):
    def find_donor_by_id(self, donor_id):
        return db.session.get(Donor, donor_id)

    def find_blood_bank_by_id(self, blood_bank_id):
        return db.session.get(BloodBank, blood_bank_id)

    def find_institution_by_id(self, institution_id):
        return db.session.get(MedicalInstitution, institution_id)

    def find_donor_by_user(self, user_id):
        return Donor.query.filter_by(user_id=str(user_id)).first()

    def find_blood_bank_by_user(self, user_id):
        return BloodBank.query.filter_by(user_id=str(user_id)).first()

    def find_institution_by_user(self, user_id):
        return MedicalInstitution.query.filter_by(user_id=str(user_id)).first()
