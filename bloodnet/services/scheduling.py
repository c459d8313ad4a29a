"""Donation appointments and the double-booking check."""
import logging
import re
from datetime import date, datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from bloodnet.constants import ActivityType, ScheduleStatus
from bloodnet.errors import ConflictError, NotFoundError, ValidationError
from bloodnet.extensions import db
from bloodnet.models import DonationSchedule
from bloodnet.services.side_effects import fire_and_forget
from bloodnet.utils import parse_id, utcnow

logger = logging.getLogger(__name__)

TIME_SLOT_PATTERN = re.compile(
    r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])-([0-1]?[0-9]|2[0-3]):([0-5][0-9])$'
)


def parse_time_slot(value):
    """Validate ``HH:MM-HH:MM`` and return it zero-padded, e.g. ``09:00-10:00``."""
    match = TIME_SLOT_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError('timeSlot must be in format HH:MM-HH:MM (e.g., 09:00-10:00)',
                              field='timeSlot')
    start_h, start_m, end_h, end_m = (int(part) for part in match.groups())
    if (start_h, start_m) >= (end_h, end_m):
        raise ValidationError('timeSlot must end after it starts', field='timeSlot')
    return f'{start_h:02d}:{start_m:02d}-{end_h:02d}:{end_m:02d}'


def slot_start(scheduled_date, time_slot):
    hours, minutes = (int(part) for part in time_slot.split('-')[0].split(':'))
    return datetime.combine(scheduled_date, datetime.min.time()) + timedelta(hours=hours, minutes=minutes)


def parse_schedule_date(value):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        raise ValidationError('scheduledDate must be an ISO date (YYYY-MM-DD)', field='scheduledDate')


class ScheduleService:
    def __init__(self, profiles, audit):
        self.profiles = profiles
        self.audit = audit

    def check_conflicts(self, donor_id, blood_bank_id, scheduled_date, time_slot, exclude_id=None):
        """Raise ConflictError if the donor or the bank slot is already taken.

        Cancelled schedules never conflict; a donor clash is reported before a
        capacity clash.
        """
        query = DonationSchedule.query.filter(
            DonationSchedule.scheduled_date == scheduled_date,
            DonationSchedule.time_slot == time_slot,
            DonationSchedule.status != ScheduleStatus.CANCELLED.value,
            or_(DonationSchedule.donor_id == donor_id,
                DonationSchedule.blood_bank_id == blood_bank_id),
        )
        if exclude_id is not None:
            query = query.filter(DonationSchedule.id != exclude_id)
        conflicts = query.all()
        if not conflicts:
            return

        if any(s.donor_id == donor_id for s in conflicts):
            raise ConflictError('Donor already has a schedule at this time',
                                ConflictError.DONOR_CONFLICT, field='scheduledDate')
        raise ConflictError('Time slot is already occupied at this blood bank',
                            ConflictError.CAPACITY_CONFLICT, field='timeSlot')

    def get(self, schedule_id):
        schedule = db.session.get(DonationSchedule, schedule_id)
        if schedule is None:
            raise NotFoundError(f'Donation schedule with ID {schedule_id} not found', field='id')
        return schedule

    def create(self, data, actor=None, now=None):
        donor_id = parse_id(data.get('donor'), 'donor')
        blood_bank_id = parse_id(data.get('bloodBank'), 'bloodBank')
        scheduled_date = parse_schedule_date(data.get('scheduledDate'))
        time_slot = parse_time_slot(data.get('timeSlot'))

        if self.profiles.find_donor_by_id(donor_id) is None:
            raise NotFoundError(f'Donor with ID {donor_id} not found', field='donor')
        if self.profiles.find_blood_bank_by_id(blood_bank_id) is None:
            raise NotFoundError(f'Blood bank with ID {blood_bank_id} not found', field='bloodBank')

        if slot_start(scheduled_date, time_slot) <= (now or utcnow()):
            raise ValidationError('Scheduled date must be in the future', field='scheduledDate')

        self.check_conflicts(donor_id, blood_bank_id, scheduled_date, time_slot)

        schedule = DonationSchedule(
            donor_id=donor_id,
            blood_bank_id=blood_bank_id,
            scheduled_date=scheduled_date,
            time_slot=time_slot,
            status=ScheduleStatus.SCHEDULED.value,
            donation_type=data.get('donationType'),
            send_reminders=bool(data.get('sendReminders', True)),
            scheduled_by=actor.user_id if actor else None,
            notes=data.get('notes'),
        )
        self._save(schedule)

        fire_and_forget(
            'audit schedule created', self.audit.log_activity,
            ActivityType.DONATION_SCHEDULED,
            'Donation Appointment Scheduled',
            f'Donation appointment scheduled for {scheduled_date.isoformat()} at {time_slot}',
            actor.user_id if actor else None,
            {'scheduleId': schedule.id, 'donorId': donor_id, 'bloodBankId': blood_bank_id,
             'scheduledDate': scheduled_date, 'timeSlot': time_slot},
        )
        return schedule

    def update(self, schedule_id, data, actor=None):
        schedule = self.get(schedule_id)
        previous_status = schedule.status

        scheduled_date = schedule.scheduled_date
        time_slot = schedule.time_slot
        if 'scheduledDate' in data:
            scheduled_date = parse_schedule_date(data['scheduledDate'])
        if 'timeSlot' in data:
            time_slot = parse_time_slot(data['timeSlot'])

        status = schedule.status
        if 'status' in data:
            try:
                status = ScheduleStatus(data['status']).value
            except ValueError:
                raise ValidationError(f"Unknown schedule status: {data['status']}", field='status')

        completed_donation_id = schedule.completed_donation_id
        if 'completedDonation' in data:
            completed_donation_id = parse_id(data['completedDonation'], 'completedDonation')

        moved = (scheduled_date, time_slot) != (schedule.scheduled_date, schedule.time_slot)
        revived = previous_status == ScheduleStatus.CANCELLED.value \
            and status != ScheduleStatus.CANCELLED.value
        if status != ScheduleStatus.CANCELLED.value and (moved or revived):
            self.check_conflicts(schedule.donor_id, schedule.blood_bank_id,
                                 scheduled_date, time_slot, exclude_id=schedule.id)

        schedule.scheduled_date = scheduled_date
        schedule.time_slot = time_slot
        schedule.completed_donation_id = completed_donation_id
        if 'notes' in data:
            schedule.notes = data['notes']
        if status != previous_status:
            schedule.status = status
            if status == ScheduleStatus.CONFIRMED.value:
                schedule.confirmed_at = utcnow()
            elif status == ScheduleStatus.CANCELLED.value:
                schedule.cancelled_at = utcnow()
                schedule.cancellation_reason = data.get('cancellationReason')

        self._save(schedule)

        if schedule.status != previous_status:
            activity_type = {
                ScheduleStatus.CANCELLED.value: ActivityType.DONATION_CANCELLED,
                ScheduleStatus.COMPLETED.value: ActivityType.DONATION_COMPLETED,
            }.get(schedule.status, ActivityType.DONATION_SCHEDULED)
            fire_and_forget(
                'audit schedule status', self.audit.log_activity,
                activity_type,
                'Donation Schedule Updated',
                f'Donation schedule status changed from {previous_status} to {schedule.status}',
                actor.user_id if actor else None,
                {'scheduleId': schedule.id, 'previousStatus': previous_status,
                 'newStatus': schedule.status, 'cancellationReason': schedule.cancellation_reason},
            )
        return schedule

    def confirm(self, schedule_id, actor=None):
        return self.update(schedule_id, {'status': ScheduleStatus.CONFIRMED.value}, actor)

    def cancel(self, schedule_id, reason, actor=None):
        return self.update(schedule_id, {'status': ScheduleStatus.CANCELLED.value,
                                         'cancellationReason': reason}, actor)

    def complete(self, schedule_id, donation_id, actor=None):
        return self.update(schedule_id, {'status': ScheduleStatus.COMPLETED.value,
                                         'completedDonation': donation_id}, actor)

    def upcoming(self, hours=24, now=None):
        now = now or utcnow()
        horizon = now + timedelta(hours=hours)
        rows = DonationSchedule.query.filter(
            DonationSchedule.scheduled_date >= now.date(),
            DonationSchedule.scheduled_date <= horizon.date(),
            DonationSchedule.status.in_([ScheduleStatus.SCHEDULED.value, ScheduleStatus.CONFIRMED.value]),
            DonationSchedule.send_reminders.is_(True),
        ).all()
        rows = [s for s in rows if now <= slot_start(s.scheduled_date, s.time_slot) <= horizon]
        return sorted(rows, key=lambda s: slot_start(s.scheduled_date, s.time_slot))

    def stats(self, blood_bank_id=None):
        counts = {status.value: 0 for status in ScheduleStatus}
        query = db.session.query(DonationSchedule.status, db.func.count(DonationSchedule.id))
        if blood_bank_id is not None:
            query = query.filter(DonationSchedule.blood_bank_id == blood_bank_id)
        for status, count in query.group_by(DonationSchedule.status).all():
            counts[status] = count
        return counts

    def _save(self, schedule):
        try:
            db.session.add(schedule)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
