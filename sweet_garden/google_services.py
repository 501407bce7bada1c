from google.oauth2 import service_account
from googleapiclient.discovery import build
import base64
import json
import logging

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _load_credentials(config, scopes):
    """
    Build service account credentials from either the base64 encoded JSON in the environment
    or the key file path. Returns None when neither is configured.
    """
    if config.service_account_json:
        info = json.loads(base64.b64decode(config.service_account_json).decode('utf-8'))
        return service_account.Credentials.from_service_account_info(info, scopes=scopes)
    if config.service_account_file:
        return service_account.Credentials.from_service_account_file(config.service_account_file, scopes=scopes)
    return None


def build_calendar_service(config):
    creds = _load_credentials(config, CALENDAR_SCOPES)
    if creds is None:
        logger.warning("Service account credentials not set. Calendar features disabled.")
        return None
    # file_cache only works with oauth2client<4.0.0
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def build_sheets_service(config):
    creds = _load_credentials(config, SHEETS_SCOPES)
    if creds is None:
        logger.warning("Service account credentials not set. Sheets features disabled.")
        return None
    return build("sheets", "v4", credentials=creds, cache_discovery=False)
