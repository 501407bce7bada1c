from datetime import date
import logging

from .availability import BookingCalendar, TIMEZONE, to_iso_with_tz
from .error_utils import SlotUnavailableError

logger = logging.getLogger(__name__)

BOOKING_TYPE_LABELS = {"artist": "Artista", "client": "Cliente"}

# Google Calendar color ids: 5=banana, 9=blueberry
PLAN_COLOR_IDS = {"flash": "9", "plus": "5"}


class BookingService:

    def __init__(self, calendar: BookingCalendar):
        self.calendar = calendar

    def create_booking(self, fields: dict) -> dict:
        """
        Books the requested slot as a calendar event.

        Args: fields is an already validated booking request (see booking_utils.validate_booking_request).
            date is a datetime.date, slot a {"start": "HH:MM", "end": "HH:MM"} dict.

        Returns: dict with the created event's id, summary, start and end.

        Raises: SlotUnavailableError if the slot was taken since the visitor listed availability.
            This narrows the race between listing and booking but cannot close it: the calendar has no transaction.
        """
        day = fields["date"]
        slot = fields["slot"]
        if not self.slot_is_free(day, fields["planType"], slot):
            logger.info("Rejecting booking, slot %s-%s on %s already taken", slot["start"], slot["end"], day)
            raise SlotUnavailableError(day.isoformat(), slot)

        event = self._plan_event(fields)
        created = self.calendar.service.events().insert(calendarId=self.calendar.calendar_id, body=event).execute()
        logger.info("Booking created. Event id: %s", created.get("id"))
        return {
            "id": created.get("id"),
            "summary": created.get("summary"),
            "start": created.get("start"),
            "end": created.get("end"),
        }

    def slot_is_free(self, day: date, plan_type: str, slot: dict) -> bool:
        available = self.calendar.available_slots(day, plan_type)
        return any(s["start"] == slot["start"] and s["end"] == slot["end"] for s in available)

    @staticmethod
    def _plan_event(fields: dict) -> dict:
        day = fields["date"]
        slot = fields["slot"]
        plan_label = fields["planType"].upper()
        type_label = BOOKING_TYPE_LABELS[fields["bookingType"]]

        description = [
            f"Plan: {plan_label}",
            f"Tipo: {type_label}",
            f"Nombre: {fields['name']}",
            f"Email: {fields['email']}",
            f"Teléfono: {fields['phone']}",
        ]
        if fields.get("notes"):
            description.append(f"Notas: {fields['notes']}")

        return {
            "summary": f"{plan_label} — {fields['name']} ({type_label})",
            "description": "\n".join(description),
            "start": {"dateTime": to_iso_with_tz(day, slot["start"]), "timeZone": TIMEZONE},
            "end": {"dateTime": to_iso_with_tz(day, slot["end"]), "timeZone": TIMEZONE},
            "colorId": PLAN_COLOR_IDS[fields["planType"]],
            # Written for staff reference in the calendar, never read back by the site
            "extendedProperties": {
                "private": {
                    "bookingType": fields["bookingType"],
                    "planType": fields["planType"],
                    "customerName": fields["name"],
                    "customerEmail": fields["email"],
                    "customerPhone": fields["phone"],
                }
            },
        }
