"""
Security headers and CORS for every response.

Headers added:
- Content-Security-Policy: same-origin only, plus Google Fonts and the Google sign-in frame
- X-Content-Type-Options: nosniff
- X-Frame-Options: SAMEORIGIN
- Referrer-Policy: no-referrer
- Cross-Origin-Opener-Policy: same-origin-allow-popups (the OAuth popup posts back to its opener)
- Strict-Transport-Security (production only)
"""
import logging
import secrets
from flask import g
from flask_cors import CORS

logger = logging.getLogger(__name__)

CSP_DIRECTIVES = {
    "default-src": ["'self'"],
    "style-src": ["'self'", "'unsafe-inline'", "https://fonts.googleapis.com"],
    "font-src": ["'self'", "https://fonts.gstatic.com"],
    "img-src": ["'self'", "data:"],
    "script-src": ["'self'"],
    "frame-src": ["'self'", "https://www.google.com"],
    "connect-src": ["'self'"],
    "object-src": ["'none'"],
    "base-uri": ["'self'"],
    "frame-ancestors": ["'self'"],
}

CORS_METHODS = ['GET', 'POST', 'PUT']
CORS_HEADERS = ['Content-Type', 'Authorization']


def script_nonce() -> str:
    """Nonce for an inline script on the current response. The CSP header allows it."""
    if 'csp_nonce' not in g:
        g.csp_nonce = secrets.token_urlsafe(16)
    return g.csp_nonce


def content_security_policy(nonce=None) -> str:
    directives = []
    for name, sources in CSP_DIRECTIVES.items():
        if name == 'script-src' and nonce:
            sources = sources + [f"'nonce-{nonce}'"]
        directives.append(f"{name} {' '.join(sources)}")
    return "; ".join(directives)


def init_security(app, config):
    CORS(app, resources={r"/api/*": {"origins": config.cors_origin}},
         methods=CORS_METHODS, allow_headers=CORS_HEADERS)
    logger.info("CORS allowed origin: %s", config.cors_origin)

    @app.after_request
    def add_security_headers(response):
        response.headers["Content-Security-Policy"] = content_security_policy(g.get('csp_nonce'))
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"
        if config.production:
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
        return response
