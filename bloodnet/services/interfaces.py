"""Capabilities the engines depend on.

Concrete SQLAlchemy-backed implementations are wired in
``bloodnet.services.build_services``; tests can swap in fakes.
"""
from abc import ABC, abstractmethod


class InventoryStore(ABC):
    @abstractmethod
    def get_unit(self, unit_id):
        """Return the unit or None."""

    @abstractmethod
    def conditional_update(self, unit_id, expected_statuses, changes):
        """Apply ``changes`` only if the unit is still in one of
        ``expected_statuses``. Returns True when the write happened."""

    @abstractmethod
    def find_by_status(self, status, blood_bank_id=None):
        pass

    @abstractmethod
    def find_expired(self, now):
        pass

    @abstractmethod
    def find_expiring_soon(self, now, days):
        pass

    @abstractmethod
    def find_available(self, groups, now, blood_bank_id=None, limit=None):
        """Compatible in-inventory units, oldest collection first."""

    @abstractmethod
    def count_by_status(self, blood_bank_id=None):
        pass


class DonorLookup(ABC):
    @abstractmethod
    def find_donor_by_id(self, donor_id):
        pass

    @abstractmethod
    def find_blood_bank_by_id(self, blood_bank_id):
        pass

    @abstractmethod
    def find_institution_by_id(self, institution_id):
        pass

    @abstractmethod
    def find_donor_by_user(self, user_id):
        pass

    @abstractmethod
    def find_blood_bank_by_user(self, user_id):
        pass

    @abstractmethod
    def find_institution_by_user(self, user_id):
        pass


class Notifier(ABC):
    @abstractmethod
    def notify_new_blood_request(self, request_id, blood_type, location_label, priority,
                                 donor_ids, blood_bank_ids):
        pass

    @abstractmethod
    def notify_blood_request_fulfilled(self, requester_id, request_id, blood_type, fulfilled_by):
        pass

    @abstractmethod
    def notify_expiring_units(self, blood_bank_id, units):
        pass


class AuditLog(ABC):
    @abstractmethod
    def log_activity(self, activity_type, title, description, user_id=None, metadata=None):
        pass
