import logging
import os
import secrets

logger = logging.getLogger(__name__)


def _split_emails(raw: str) -> frozenset:
    return frozenset(e.strip().lower() for e in (raw or '').split(',') if e.strip())


class Config:
    """
    Settings read from the environment. A .env file is loaded by the app factory before this is built.

    Calendar and sheets features stay disabled (handles are None) when their variables are unset,
    so the site can still serve health and auth config without Google credentials.
    """

    def __init__(self, environ=None):
        env = os.environ if environ is None else environ

        self.production = env.get('FLASK_ENV') == 'production'

        # Base64 encoded service account JSON takes precedence over a key file path
        self.service_account_json = env.get('GOOGLE_SERVICE_ACCOUNT_JSON')
        self.service_account_file = env.get('SERVICE_ACCOUNT_FILE')

        self.calendar_id = env.get('GOOGLE_CALENDAR_ID') or None
        self.google_client_id = env.get('GOOGLE_CLIENT_ID') or None
        self.google_client_secret = env.get('GOOGLE_CLIENT_SECRET') or None

        self.ingresos_sheet_id = env.get('INGRESOS_SHEET_ID') or None
        self.egresos_sheet_id = env.get('EGRESOS_SHEET_ID') or None

        self.authorized_emails = _split_emails(env.get('AUTHORIZED_EMAILS', ''))

        self.session_secret = env.get('SESSION_SECRET')
        if not self.session_secret:
            logger.warning("SESSION_SECRET not set. Sessions will not survive server restarts.")
            self.session_secret = secrets.token_hex(32)  # 256 bit

        self.port = int(env.get('PORT', 5003))

        # Browser origin allowed to call /api. '*' echoes the caller's origin back
        self.cors_origin = (env.get('CORS_ORIGIN') or env.get('RENDER_EXTERNAL_URL')
                            or ('*' if self.production else f'http://localhost:{self.port}'))

    def is_authorized_email(self, email) -> bool:
        return bool(email) and email.lower() in self.authorized_emails
