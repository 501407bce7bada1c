# Utility functions for validating booking and availability input
import re
from datetime import date
import phonenumbers
from email_validator import validate_email, EmailNotValidError

from .availability import PLAN_TYPES, local_today
from .booking_service import BOOKING_TYPE_LABELS
from .error_utils import ValidationError

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
SLOT_PATTERN = re.compile(r'^\d{2}:\d{2}$')

MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 1000


def parse_iso_date(value) -> date | None:
    """Returns the date for a strict YYYY-MM-DD string, None otherwise."""
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def validate_availability_query(date_param, plan_param) -> tuple[date, str]:
    """
    Validates the query string of an availability lookup.

    Returns: (date, plan) ready for BookingCalendar.available_slots.

    Raises: ValidationError with a single Spanish message, reported to the visitor as-is.
    """
    if not date_param or not plan_param:
        raise ValidationError('Parámetros date y plan son requeridos')
    if plan_param not in PLAN_TYPES:
        raise ValidationError('Plan debe ser "flash" o "plus"')
    day = parse_iso_date(date_param)
    if day is None:
        raise ValidationError('Formato de fecha inválido. Usa YYYY-MM-DD')
    if day < local_today():
        raise ValidationError('No se puede consultar fechas pasadas')
    return day, plan_param


def sanitize_email(email) -> tuple[str | None, str | None]:
    """Returns (normalized_email, None) or (None, error message)."""
    if not isinstance(email, str):
        return None, 'Email inválido'
    email = email.strip()
    # 254 characters is the maximum by RFC 5321 / 5322
    if not email or len(email) > 254:
        return None, 'Email inválido'
    try:
        valid = validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return None, 'Email inválido'
    return valid.normalized.lower(), None


def sanitize_phone(phone) -> tuple[str | None, str | None]:
    """
    Returns (phone, None) or (None, error message).

    Any entry with at least 7 non-space characters is accepted. Entries phonenumbers recognizes
    (read as Colombian without an international prefix) are stored as E.164, anything else as typed.
    """
    if not isinstance(phone, str):
        return None, 'Teléfono inválido'
    phone = phone.strip()
    if len(phone) > 50 or len(re.sub(r'\s', '', phone)) < 7:
        return None, 'Teléfono inválido'
    try:
        parsed_phone = phonenumbers.parse(phone, None if phone.startswith('+') else 'CO')
    except phonenumbers.NumberParseException:
        return phone, None
    if not phonenumbers.is_possible_number(parsed_phone):
        return phone, None
    return phonenumbers.format_number(parsed_phone, phonenumbers.PhoneNumberFormat.E164), None


def sanitize_notes(notes) -> tuple[str, str | None]:
    if notes is None:
        return '', None
    if not isinstance(notes, str):
        return '', 'Notas inválidas'
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        return '', f'Las notas no pueden superar {MAX_NOTES_LENGTH} caracteres'
    # Allow: tab, LF, CR. Reject any other control character.
    if any(ord(ch) < 32 and ord(ch) not in {9, 10, 13} for ch in notes):
        return '', 'Las notas contienen caracteres no permitidos'
    return notes, None


def _valid_slot(slot) -> bool:
    return (isinstance(slot, dict)
            and isinstance(slot.get('start'), str) and SLOT_PATTERN.match(slot['start'])
            and isinstance(slot.get('end'), str) and SLOT_PATTERN.match(slot['end']))


def validate_booking_request(payload) -> dict:
    """
    Validates a booking form submission field by field.

    Returns: cleaned fields for BookingService.create_booking.

    Raises: ValidationError carrying every failed field's message.
    """
    if not isinstance(payload, dict):
        raise ValidationError('Solicitud inválida')

    errors = []

    name = payload.get('name')
    name = name.strip() if isinstance(name, str) else ''
    if len(name) < 2:
        errors.append('Nombre debe tener al menos 2 caracteres')
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f'Nombre no puede superar {MAX_NAME_LENGTH} caracteres')

    email, error = sanitize_email(payload.get('email'))
    if error:
        errors.append(error)

    phone, error = sanitize_phone(payload.get('phone'))
    if error:
        errors.append(error)

    day = parse_iso_date(payload.get('date'))
    if day is None:
        errors.append('Fecha inválida')
    elif day < local_today():
        errors.append('No se puede reservar en fechas pasadas')

    slot = payload.get('slot')
    if not _valid_slot(slot):
        errors.append('Horario no seleccionado')

    plan_type = payload.get('planType')
    if plan_type not in PLAN_TYPES:
        errors.append('Tipo de plan inválido')

    booking_type = payload.get('bookingType')
    if not isinstance(booking_type, str) or booking_type not in BOOKING_TYPE_LABELS:
        errors.append('Tipo de reserva inválido')

    notes, error = sanitize_notes(payload.get('notes'))
    if error:
        errors.append(error)

    if errors:
        raise ValidationError(errors)

    return {
        "name": name,
        "email": email,
        "phone": phone,
        "date": day,
        "slot": {"start": slot['start'], "end": slot['end']},
        "planType": plan_type,
        "bookingType": booking_type,
        "notes": notes,
    }
