"""Warranty result and error envelopes.

Services return ``{"success": True, ...}`` or a failure built by
:func:`failure_result`; views turn either into a response with
:func:`result_response`.  Ad-hoc view errors use :func:`api_error`.

Usage
-----
    from dealer_portal.utils.errors import E, api_error, result_response

    return result_response(warranty_service.submit_claim(claim_id, g.principal))
    return api_error(E.NOT_FOUND, "Warranty claim not found")
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes carried in ``code`` of every failure."""

    # Bad claim input: a required field is absent / a value is out of range
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Missing or bad bearer token
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Claim missing or owned by another dealer
    NOT_FOUND = "ERR_NOT_FOUND"

    # Claim number collision / action not allowed from the current status
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Role or ownership check failed
    FORBIDDEN = "ERR_FORBIDDEN"

    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_STATUS_BY_CODE: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def status_for(code: str) -> int:
    """HTTP status for an error code (400 when unknown)."""
    return _STATUS_BY_CODE.get(code, 400)


def failure_result(message: str, code: str, details: dict | None = None) -> dict:
    """Service-level failure; ``details`` maps field names to messages."""
    result = {"success": False, "error": message, "code": code}
    if details:
        result["details"] = details
    return result


def result_response(result: dict, success_status: int = 200):
    """Render a service result: the dict itself on success, else an error body."""
    if result.get("success"):
        return jsonify(result), success_status
    return api_error(result["code"], result["error"], details=result.get("details"))


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return ``(jsonify({"error", "code"[, "details"]}), status)``.

    ``status`` overrides the code's default mapping.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or status_for(code)
