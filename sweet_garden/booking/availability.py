"""
Calendar availability for Sweet Garden bookings.

Business day runs 09:00 to 19:00 in Bogota time (fixed UTC-5, no DST).

Flash plan: five fixed 2 hour slots, each offered only if no calendar event overlaps it.
Plus plan: the whole business day, offered only if the calendar has no events at all that day.
"""
from datetime import date, datetime, time, timedelta, timezone
import logging

from .error_utils import ServiceNotConfiguredError
from .period import Period

logger = logging.getLogger(__name__)

TIMEZONE = 'America/Bogota'
LOCAL_TZ = timezone(timedelta(hours=-5), 'COT')

OPEN_HOUR = 9
CLOSE_HOUR = 19

PLAN_TYPES = ('flash', 'plus')

FLASH_SLOTS = [
    {"start": "09:00", "end": "11:00"},
    {"start": "11:00", "end": "13:00"},
    {"start": "13:00", "end": "15:00"},
    {"start": "15:00", "end": "17:00"},
    {"start": "17:00", "end": "19:00"},
]

PLUS_SLOT = {"start": f"{OPEN_HOUR:02d}:00", "end": f"{CLOSE_HOUR:02d}:00"}


def local_today() -> date:
    return datetime.now(LOCAL_TZ).date()


def to_local_datetime(day: date, hhmm: str) -> datetime:
    hours, minutes = (int(part) for part in hhmm.split(':'))
    return datetime.combine(day, time(hours, minutes), tzinfo=LOCAL_TZ)


def to_iso_with_tz(day: date, hhmm: str) -> str:
    """Google API wants RFC3339 with offset, e.g. 2025-06-10T09:00:00-05:00"""
    return to_local_datetime(day, hhmm).isoformat()


def slot_period(day: date, slot: dict) -> Period:
    return Period(to_local_datetime(day, slot["start"]), to_local_datetime(day, slot["end"]))


def _event_boundary(boundary: dict) -> datetime:
    # Timed events carry dateTime, all-day events only a date
    if boundary.get('dateTime'):
        return datetime.fromisoformat(boundary['dateTime'].replace('Z', '+00:00'))
    return datetime.combine(date.fromisoformat(boundary['date']), time(0, 0), tzinfo=LOCAL_TZ)


def busy_period_from_event(event: dict) -> Period:
    return Period(_event_boundary(event['start']), _event_boundary(event['end']))


def free_slots(day: date, plan_type: str, busy_periods: list[Period]) -> list[dict]:
    """
    Pure slot filtering, separated from the calendar call so it can be reasoned about on its own.
    """
    if plan_type == 'plus':
        # Plus needs the entire day free
        return [dict(PLUS_SLOT)] if not busy_periods else []

    return [dict(slot) for slot in FLASH_SLOTS
            if not any(slot_period(day, slot).overlaps(busy) for busy in busy_periods)]


class BookingCalendar:

    def __init__(self, service, calendar_id):
        self.service = service
        self.calendar_id = calendar_id

    def _require_configured(self):
        if self.service is None or not self.calendar_id:
            raise ServiceNotConfiguredError('Google Calendar')

    def busy_periods(self, day: date) -> list[Period]:
        """
        Lists every event inside the day's business hours window and converts each to a Period.
        Follows pagination so a busy day never silently drops events.
        """
        self._require_configured()
        time_min = to_iso_with_tz(day, f"{OPEN_HOUR:02d}:00")
        time_max = to_iso_with_tz(day, f"{CLOSE_HOUR:02d}:00")

        events = []
        page_token = None
        while True:
            response = self.service.events().list(
                calendarId=self.calendar_id,
                timeMin=time_min,
                timeMax=time_max,
                singleEvents=True,
                orderBy='startTime',
                pageToken=page_token,
            ).execute()
            events.extend(response.get('items', []))
            page_token = response.get('nextPageToken')
            if not page_token:
                break

        logger.info("Found %s calendar events on %s", len(events), day.isoformat())
        return [busy_period_from_event(event) for event in events]

    def available_slots(self, day: date, plan_type: str) -> list[dict]:
        return free_slots(day, plan_type, self.busy_periods(day))
