"""Recurring inventory jobs run by Flask-APScheduler."""
import logging

from bloodnet.constants import ActivityType
from bloodnet.extensions import scheduler
from bloodnet.services import get_services
from bloodnet.services.side_effects import fire_and_forget

logger = logging.getLogger(__name__)


def _run(name, work):
    with scheduler.app.app_context():
        try:
            work(get_services())
        except Exception as exc:
            logger.exception('Scheduled job %s failed', name)
            fire_and_forget(
                f'audit {name} failure', get_services().audit.log_activity,
                ActivityType.ALERT,
                'Scheduled Job Failed',
                f'{name} failed: {exc}',
            )


def process_expired_units():
    _run('process_expired_units', lambda services: services.sweeper.process_expired())


def check_expiring_units():
    _run('check_expiring_units', lambda services: services.sweeper.check_expiring())


def inventory_report():
    _run('inventory_report', lambda services: services.sweeper.inventory_report())


def register_jobs():
    scheduler.add_job(id='process_expired_units', func=process_expired_units,
                      trigger='cron', hour=6, minute=0, replace_existing=True)
    scheduler.add_job(id='check_expiring_units', func=check_expiring_units,
                      trigger='cron', hour=8, minute=0, replace_existing=True)
    scheduler.add_job(id='inventory_report', func=inventory_report,
                      trigger='cron', day_of_week='mon-fri', hour=9, minute=0, replace_existing=True)
