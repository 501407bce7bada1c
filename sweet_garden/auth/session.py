from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from google_auth_oauthlib.flow import Flow
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from oauthlib.oauth2.rfc6749.errors import OAuth2Error
import logging

from sweet_garden.booking.error_utils import AuthenticationError, ServiceNotConfiguredError

logger = logging.getLogger(__name__)

SESSION_MAX_AGE = 2 * 60 * 60  # 2 hours
SESSION_SALT = 'finanzas-session'

# Full scope URLs, otherwise oauthlib raises on the scope Google echoes back
LOGIN_SCOPES = [
    'openid',
    'https://www.googleapis.com/auth/userinfo.email',
    'https://www.googleapis.com/auth/userinfo.profile',
]


class GoogleIdentity:
    """
    Verifies Google sign-in credentials. Signature, audience and expiry checks are done by google-auth
    against Google's published certificates.
    """

    def __init__(self, client_id, client_secret=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self._request = google_requests.Request()

    def verify(self, token: str) -> dict:
        """
        Returns: {"email", "name", "picture", "emailVerified"} from the ID token.

        Raises: AuthenticationError if the token is invalid, expired or for another audience.
        """
        if not self.client_id:
            raise ServiceNotConfiguredError('Google OAuth')
        try:
            payload = id_token.verify_oauth2_token(token, self._request, audience=self.client_id)
        except ValueError as e:
            logger.warning("Google token verification failed: %s", e)
            raise AuthenticationError('Token inválido') from e
        return {
            "email": payload.get('email'),
            "name": payload.get('name'),
            "picture": payload.get('picture'),
            "emailVerified": bool(payload.get('email_verified')),
        }

    def exchange_code(self, code: str, redirect_uri: str) -> dict:
        """
        Authorization code login path used by the popup: trades the code for tokens server side,
        then verifies the returned ID token like any other credential.
        """
        if not self.client_id or not self.client_secret:
            raise ServiceNotConfiguredError('Google OAuth')
        flow = Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            },
            scopes=LOGIN_SCOPES,
            redirect_uri=redirect_uri,
        )
        try:
            flow.fetch_token(code=code)
        except OAuth2Error as e:
            logger.warning("Authorization code exchange failed: %s", e)
            raise AuthenticationError('Código de autorización inválido') from e
        return self.verify(flow.credentials.id_token)


class SessionManager:
    """
    Issues and checks the short-lived session token the dashboard replays as a bearer credential.
    Verification is local: signature and age only.
    """

    def __init__(self, secret_key: str, max_age: int = SESSION_MAX_AGE):
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=SESSION_SALT)

    def create(self, user: dict) -> str:
        return self._serializer.dumps({"email": user.get("email"), "name": user.get("name")})

    def verify(self, token: str) -> dict:
        """
        Returns: {"email", "name"}.

        Raises: AuthenticationError if the signature is bad or the token is older than max_age.
        """
        if not token:
            raise AuthenticationError('Token requerido')
        try:
            return self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired as e:
            logger.info("Session token expired")
            raise AuthenticationError('Sesión expirada') from e
        except BadSignature as e:
            logger.warning("Invalid session token signature")
            raise AuthenticationError('Sesión inválida') from e
