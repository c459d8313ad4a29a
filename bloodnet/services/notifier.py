"""Notification delivery for blood requests and inventory alerts.

Each message is stored as a ``Notification`` row, then pushed over SMS
(Africa's Talking) and an optional JSON webhook. Expiry alerts to blood banks
also go out by e-mail.
"""
import logging

import africastalking
import requests
from flask_mail import Message
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.extensions import db, mail
from bloodnet.models import Notification
from bloodnet.services.interfaces import Notifier

logger = logging.getLogger(__name__)


def init_sms(app):
    if app.config.get('SMS_ENABLED'):
        africastalking.initialize(
            username=app.config['AT_USERNAME'],
            api_key=app.config['AT_API_KEY'],
        )


class NotificationDispatcher(Notifier):
    def __init__(self, profiles, sms_enabled=False, webhook_url=None, webhook_timeout=5):
        self.profiles = profiles
        self.sms_enabled = sms_enabled
        self.webhook_url = webhook_url
        self.webhook_timeout = webhook_timeout

    def notify_new_blood_request(self, request_id, blood_type, location_label, priority,
                                 donor_ids, blood_bank_ids):
        where = location_label or 'your area'
        for donor_id in donor_ids:
            donor = self.profiles.find_donor_by_id(donor_id)
            if not donor:
                continue
            message = f"Hello {donor.name}, a {priority} priority request for {blood_type} blood " \
                      f"was posted near {where}. Please respond if you can donate."
            self._deliver('donor', donor.id, donor.phone, 'New blood request', message, request_id)

        for bank_id in blood_bank_ids:
            bank = self.profiles.find_blood_bank_by_id(bank_id)
            if not bank:
                continue
            message = f"{bank.name}: a {priority} priority request for {blood_type} blood " \
                      f"was posted near {where}."
            self._deliver('blood_bank', bank.id, bank.phone, 'New blood request', message, request_id)

        self._commit()
        logger.info('Request %s announced to %d donors and %d blood banks',
                    request_id, len(donor_ids), len(blood_bank_ids))

    def notify_blood_request_fulfilled(self, requester_id, request_id, blood_type, fulfilled_by):
        if requester_id is None:
            logger.info('Request %s fulfilled; no requesting user to notify', request_id)
            return
        message = f"Your blood request for {blood_type} has been fulfilled by {fulfilled_by}."
        self._deliver('user', requester_id, None, 'Blood request fulfilled', message, request_id)
        self._commit()

    def notify_expiring_units(self, blood_bank_id, units):
        bank = self.profiles.find_blood_bank_by_id(blood_bank_id)
        if not bank:
            return
        lines = [
            f"- unit {unit.id} ({unit.blood_group}) expires {unit.expiry_date:%Y-%m-%d %H:%M}"
            for unit in units
        ]
        body = f"{len(units)} blood unit(s) at {bank.name} are about to expire:\n" + "\n".join(lines)
        self._deliver('blood_bank', bank.id, None, 'Blood units expiring soon', body, None)
        self._commit()
        if bank.email:
            mail.send(Message(
                subject=f'{len(units)} blood unit(s) expiring soon',
                recipients=[bank.email],
                body=body,
            ))

    def _deliver(self, recipient_type, recipient_id, phone, title, message, request_id):
        notification = Notification(
            recipient_type=recipient_type,
            recipient_id=str(recipient_id),
            request_id=request_id,
            title=title,
            message=message,
            status='Pending',
        )

        if self.sms_enabled and phone:
            try:
                africastalking.SMS.send(message, [phone])
                notification.status = 'Sent'
            except Exception:
                logger.exception('SMS to %s %s failed', recipient_type, recipient_id)
                notification.status = 'Failed'

        if self.webhook_url:
            try:
                response = requests.post(
                    self.webhook_url,
                    json={
                        'recipientType': recipient_type,
                        'recipientId': str(recipient_id),
                        'requestId': request_id,
                        'title': title,
                        'message': message,
                    },
                    timeout=self.webhook_timeout,
                )
                response.raise_for_status()
            except requests.RequestException:
                logger.exception('Webhook delivery to %s %s failed', recipient_type, recipient_id)

        db.session.add(notification)
        return notification

    def _commit(self):
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
