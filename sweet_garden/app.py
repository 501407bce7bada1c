import logging
from dotenv import load_dotenv
from flask import Blueprint, Flask, current_app, jsonify, render_template_string, request, url_for
from flask_debugtoolbar import DebugToolbarExtension
from flask_httpauth import HTTPTokenAuth
from googleapiclient.errors import HttpError
from werkzeug.exceptions import HTTPException, InternalServerError

from sweet_garden.auth.session import GoogleIdentity, SessionManager
from sweet_garden.booking import booking_utils as util
from sweet_garden.booking.availability import BookingCalendar
from sweet_garden.booking.booking_service import BookingService
from sweet_garden.booking.error_utils import (AuthenticationError, ServiceNotConfiguredError, SheetSchemaError,
                                              SlotUnavailableError, ValidationError)
from sweet_garden.config import Config
from sweet_garden.finance.ledger import SheetLedger, sheet_configs
from sweet_garden.google_services import build_calendar_service, build_sheets_service
from sweet_garden.rate_limit import booking_limiter, rate_limited
from sweet_garden.security_headers import init_security, script_nonce

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = 'Ocurrió un error. Por favor intenta nuevamente.'
SLOT_TAKEN_MESSAGE = 'Este horario ya no está disponible. Por favor selecciona otro.'
MAX_SHEET_COLUMNS = 26  # Tracked range is A:Z

api = Blueprint('api', __name__, url_prefix='/api')
auth = HTTPTokenAuth(scheme='Bearer')


class Services:
    """
    Google client handles and the engines built on them. Created once per app and shared by every request.
    """

    def __init__(self, config, calendar_service, sheets_service, identity):
        self.config = config
        self.calendar = BookingCalendar(calendar_service, config.calendar_id)
        self.bookings = BookingService(self.calendar)
        self.ledger = SheetLedger(sheets_service, sheet_configs(config))
        self.identity = identity
        self.sessions = SessionManager(config.session_secret)


def services() -> Services:
    return current_app.extensions['sweet_garden']


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def create_app(config=None, calendar_service=None, sheets_service=None, identity=None):
    load_dotenv()
    config = config or Config()

    app = Flask(__name__)
    app.secret_key = config.session_secret
    app.config['SECRET_KEY'] = app.secret_key
    app.config['PRODUCTION'] = config.production
    if not config.production:
        app.config["DEBUG_TB_INTERCEPT_REDIRECTS"] = False

    if calendar_service is None:
        calendar_service = build_calendar_service(config)
    if sheets_service is None:
        sheets_service = build_sheets_service(config)
    if identity is None:
        identity = GoogleIdentity(config.google_client_id, config.google_client_secret)

    app.extensions['sweet_garden'] = Services(config, calendar_service, sheets_service, identity)
    app.extensions['rate_limiters'] = {'booking': booking_limiter()}

    app.register_blueprint(api)
    app.add_url_rule('/auth/callback', 'auth_callback', auth_callback)
    _register_error_handlers(app)
    init_security(app, config)
    return app


# ---------------------------------------------------------------------------
# Session auth for the finance dashboard
# ---------------------------------------------------------------------------

@auth.verify_token
def verify_session_token(token):
    try:
        return services().sessions.verify(token)
    except AuthenticationError:
        return None


@auth.get_user_roles
def get_user_roles(user):
    # Allow-list is re-checked on every call so removing an email takes effect before the session expires
    if services().config.is_authorized_email(user.get('email')):
        return ['staff']
    return []


@auth.error_handler
def auth_error(status):
    message = 'Token de autorización requerido' if status == 401 else 'No autorizado'
    return jsonify({"error": message}), status


# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------

@api.route('/health')
def health():
    return jsonify({"status": "ok", "service": "sweet-garden"})


@api.route('/auth/config')
def auth_config():
    return jsonify({"clientId": services().config.google_client_id})


def _authorize_google_user(user: dict):
    """Returns None when the Google user may open the dashboard, otherwise the refusal reason."""
    if not user.get('emailVerified'):
        return 'Email no verificado'
    if not services().config.is_authorized_email(user.get('email')):
        return 'No autorizado'
    return None


@api.route('/auth/verify', methods=['POST'])
def auth_verify():
    payload = _json_body()
    token = payload.get('token')
    if not token:
        return jsonify({"error": "Token requerido"}), 400

    # AuthenticationError is turned into a 401 by the error handler
    user = services().identity.verify(token)
    reason = _authorize_google_user(user)
    if reason:
        logger.warning("Refused dashboard access for %s: %s", user.get('email'), reason)
        return jsonify({"authorized": False, "email": user.get('email'), "reason": reason}), 403

    logger.info("Issued dashboard session for %s", user['email'])
    return jsonify({
        "authorized": True,
        "email": user['email'],
        "name": user.get('name'),
        "sessionToken": services().sessions.create(user),
    })


@api.route('/auth/session', methods=['POST'])
def auth_session():
    payload = _json_body()
    try:
        user = services().sessions.verify(payload.get('token'))
    except AuthenticationError as e:
        return jsonify({"authorized": False, "error": str(e)}), 401
    if not services().config.is_authorized_email(user.get('email')):
        return jsonify({"authorized": False, "error": "No autorizado"}), 403
    return jsonify({"authorized": True, "email": user['email'], "name": user.get('name')})


AUTH_CALLBACK_PAGE = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>Sweet Garden</title></head>
<body>
<script nonce="{{ nonce }}">
  (function () {
    var payload = {{ payload|tojson }};
    if (window.opener) {
      window.opener.postMessage(payload, window.location.origin);
    }
    window.close();
  })();
</script>
</body></html>
"""


def auth_callback():
    """
    Landing page of the OAuth popup login. Exchanges the code, then hands the session to the opener window.
    """
    payload = {"type": "google-auth"}
    code = request.args.get('code')
    if not code:
        payload["error"] = request.args.get('error', 'missing_code')
        return render_template_string(AUTH_CALLBACK_PAGE, payload=payload, nonce=script_nonce()), 400

    redirect_uri = url_for('auth_callback', _external=True)
    try:
        user = services().identity.exchange_code(code, redirect_uri)
    except (AuthenticationError, ServiceNotConfiguredError) as e:
        logger.error("OAuth callback failed: %s", e)
        payload["error"] = str(e)
        return render_template_string(AUTH_CALLBACK_PAGE, payload=payload, nonce=script_nonce()), 401

    if _authorize_google_user(user):
        payload.update({"error": "unauthorized", "email": user.get('email')})
        return render_template_string(AUTH_CALLBACK_PAGE, payload=payload, nonce=script_nonce()), 403

    payload.update({
        "session_token": services().sessions.create(user),
        "email": user['email'],
        "name": user.get('name'),
    })
    return render_template_string(AUTH_CALLBACK_PAGE, payload=payload, nonce=script_nonce())


@api.route('/availability')
def availability():
    day, plan = util.validate_availability_query(request.args.get('date'), request.args.get('plan'))
    return jsonify(services().calendar.available_slots(day, plan))


@api.route('/bookings', methods=['POST'])
@rate_limited('booking')
def create_booking():
    fields = util.validate_booking_request(request.get_json(silent=True))
    booking = services().bookings.create_booking(fields)
    return jsonify({"message": "Reserva creada exitosamente", "booking": booking}), 201


# ---------------------------------------------------------------------------
# Finance dashboard routes (session protected)
# ---------------------------------------------------------------------------

def _parse_period(args) -> tuple[int, int]:
    try:
        year = int(args.get('year', ''))
        month = int(args.get('month', ''))
    except ValueError:
        raise ValidationError('Año y mes son requeridos')
    if year < 1 or not 1 <= month <= 12:
        raise ValidationError('Año y mes son requeridos')
    return year, month


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_cell_value(value) -> bool:
    return value is None or isinstance(value, (str, int, float)) and not isinstance(value, bool)


@api.route('/finanzas')
@auth.login_required(role='staff')
def finance_summary():
    year, month = _parse_period(request.args)
    summary = services().ledger.finance_summary(year, month)
    return jsonify({
        "resumen": {
            "totalIngresos": summary["totalIncome"],
            "totalEgresos": summary["totalExpense"],
            "flujoCaja": summary["cashFlow"],
        }
    })


@api.route('/finanzas/sheet/<sheet_type>')
@auth.login_required(role='staff')
def finance_sheet(sheet_type):
    year, month = _parse_period(request.args)
    return jsonify(services().ledger.get_sheet(sheet_type, year, month))


@api.route('/finanzas/cell', methods=['PUT'])
@auth.login_required(role='staff')
def finance_update_cell():
    payload = _json_body()
    row_index = payload.get('rowIndex')
    col_index = payload.get('colIndex')
    value = payload.get('value')

    # Row 1 is the header row and is never written from the dashboard
    if not _is_int(row_index) or row_index < 2:
        raise ValidationError('Fila inválida')
    if not _is_int(col_index) or not 0 <= col_index < MAX_SHEET_COLUMNS:
        raise ValidationError('Columna inválida')
    if not _is_cell_value(value):
        raise ValidationError('Valor inválido')

    result = services().ledger.update_cell(payload.get('sheetType'), row_index, col_index,
                                           '' if value is None else value)
    logger.info("%s edited %s", auth.current_user().get('email'), result['range'])
    return jsonify({"success": True, **result})


@api.route('/finanzas/row', methods=['POST'])
@auth.login_required(role='staff')
def finance_append_row():
    payload = _json_body()
    cells = payload.get('cells')
    if not isinstance(cells, list) or not cells or len(cells) > MAX_SHEET_COLUMNS:
        raise ValidationError('Celdas inválidas')
    if not all(_is_cell_value(cell) for cell in cells):
        raise ValidationError('Celdas inválidas')

    cells = ['' if cell is None else cell for cell in cells]
    result = services().ledger.append_row(payload.get('sheetType'), cells)
    logger.info("%s appended row %s", auth.current_user().get('email'), result['rowIndex'])
    return jsonify(result), 201


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

def _server_error_message(error) -> str:
    # Real cause only outside production
    if current_app.config.get('PRODUCTION'):
        return GENERIC_ERROR_MESSAGE
    return str(error)


def _register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify({"error": error.messages[0], "errors": error.messages}), 400

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(error):
        return jsonify({"error": str(error)}), 401

    @app.errorhandler(SlotUnavailableError)
    def handle_slot_taken(error):
        return jsonify({"error": SLOT_TAKEN_MESSAGE}), 409

    @app.errorhandler(ServiceNotConfiguredError)
    @app.errorhandler(SheetSchemaError)
    def handle_configuration_error(error):
        logger.error("Configuration error: %s", error)
        return jsonify({"error": _server_error_message(error)}), 500

    # Handle an invalid googleapiclient response which raises a custom HttpError
    @app.errorhandler(HttpError)
    def handle_bad_api_call(error):
        logger.error("Google API call failed: %s", error)
        return jsonify({"error": _server_error_message(error)}), 500

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(InternalServerError)
    def handle_unexpected_error(error):
        original = getattr(error, 'original_exception', None) or error
        logger.error("Unhandled error: %s", original)
        return jsonify({"error": _server_error_message(original)}), 500


if __name__ == '__main__':
    app = create_app()
    # production
    if app.config['PRODUCTION']:
        app.run(debug=False)
    else:
        app.debug = True
        toolbar = DebugToolbarExtension(app)
        app.run(debug=True, port=app.extensions['sweet_garden'].config.port)
