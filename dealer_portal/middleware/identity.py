"""
Identity Middleware: parses the JWT from the Authorization header and sets
``g.principal``.

The identity provider is the only source of the acting user.  Routes that
need a principal check ``g.principal`` and answer 401 when it is None; this
hook never blocks a request on its own.
"""

import logging

import jwt as pyjwt
from flask import g, request

from dealer_portal.services.jwt_service import decode_access_token
from dealer_portal.services.warranty_access import Principal

logger = logging.getLogger(__name__)

# Paths that skip token parsing entirely
IDENTITY_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_identity_middleware(app):
    """Register identity parsing as a before_request hook."""

    @app.before_request
    def _resolve_principal():
        g.principal = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in IDENTITY_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token", extra={"path": path})
            return
        except pyjwt.InvalidTokenError as exc:
            logger.warning("Rejected access token: %s", exc, extra={"path": path})
            return

        g.principal = Principal(
            user_id=payload["sub"],
            role=payload["role"],
            dealer_id=payload.get("dealer_id"),
        )
