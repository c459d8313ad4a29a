"""Composition root: concrete stores and collaborators wired into the engines.

The container is built once per app and kept in ``app.extensions``.
"""
from dataclasses import dataclass

from flask import current_app

from bloodnet.services.activity import SqlAuditLog
from bloodnet.services.blood_requests import BloodRequestService
from bloodnet.services.blood_units import BloodUnitService
from bloodnet.services.fulfillment import FulfillmentEngine
from bloodnet.services.geo import GeospatialLocator
from bloodnet.services.inventory import SqlInventoryStore
from bloodnet.services.notifier import NotificationDispatcher
from bloodnet.services.profiles import SqlProfileLookup
from bloodnet.services.scheduling import ScheduleService
from bloodnet.services.sweeper import ExpirySweeper

EXTENSION_KEY = 'bloodnet.services'


@dataclass
class Services:
    inventory: object
    profiles: object
    audit: object
    notifier: object
    locator: GeospatialLocator
    units: BloodUnitService
    fulfillment: FulfillmentEngine
    requests: BloodRequestService
    sweeper: ExpirySweeper
    schedules: ScheduleService


def build_services(config, inventory=None, profiles=None, audit=None, notifier=None):
    inventory = inventory or SqlInventoryStore()
    profiles = profiles or SqlProfileLookup()
    audit = audit or SqlAuditLog()
    notifier = notifier or NotificationDispatcher(
        profiles,
        sms_enabled=config.get('SMS_ENABLED', False),
        webhook_url=config.get('NOTIFICATION_WEBHOOK_URL'),
        webhook_timeout=config.get('NOTIFICATION_WEBHOOK_TIMEOUT', 5),
    )
    locator = GeospatialLocator(
        max_donors=config['MAX_NOTIFIED_DONORS'],
        max_blood_banks=config['MAX_NOTIFIED_BLOOD_BANKS'],
    )
    units = BloodUnitService(inventory, profiles, audit)
    fulfillment = FulfillmentEngine(inventory, units, locator, profiles, notifier, audit, config)
    return Services(
        inventory=inventory,
        profiles=profiles,
        audit=audit,
        notifier=notifier,
        locator=locator,
        units=units,
        fulfillment=fulfillment,
        requests=BloodRequestService(fulfillment, profiles, audit),
        sweeper=ExpirySweeper(inventory, units, notifier, audit,
                              warning_days=config['EXPIRY_WARNING_DAYS']),
        schedules=ScheduleService(profiles, audit),
    )


def init_services(app, **overrides):
    app.extensions[EXTENSION_KEY] = build_services(app.config, **overrides)
    return app.extensions[EXTENSION_KEY]


def get_services():
    return current_app.extensions[EXTENSION_KEY]
