from bloodnet.models.activity_log_model import ActivityLog
from bloodnet.models.blood_bank_model import BloodBank
from bloodnet.models.blood_request_model import BloodRequest, blood_request_unit
from bloodnet.models.donation_model import Donation
from bloodnet.models.donation_schedule_model import DonationSchedule
from bloodnet.models.donor_model import Donor
from bloodnet.models.medical_institution_model import MedicalInstitution
from bloodnet.models.notification_model import Notification

__all__ = [
    'ActivityLog',
    'BloodBank',
    'BloodRequest',
    'blood_request_unit',
    'Donation',
    'DonationSchedule',
    'Donor',
    'MedicalInstitution',
    'Notification',
]
