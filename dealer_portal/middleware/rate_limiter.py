"""
Rate limiting configuration.

Applies per-blueprint limits using Flask-Limiter.  The Limiter instance is
created in dealer_portal/__init__.py with no default limits; this module
attaches the warranty limits once blueprints are registered.

Usage:
    from dealer_portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

from flask import g, request as flask_request


def rate_limit_key():
    """Acting user when authenticated, else remote IP."""
    principal = getattr(g, "principal", None)
    if principal is not None:
        return f"user:{principal.user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per user, falling back to remote IP):
        - Warranty endpoints: WARRANTY_WRITE_LIMIT (default 60/minute)

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    bp = app.blueprints.get("warranty")
    if bp:
        limiter.limit(app.config["WARRANTY_WRITE_LIMIT"], key_func=rate_limit_key)(bp)

    app.logger.info("Rate limiter configured, warranty: %s", app.config["WARRANTY_WRITE_LIMIT"])
