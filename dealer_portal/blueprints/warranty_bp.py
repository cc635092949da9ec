"""
Warranty Claims Blueprint.

HTTP surface of the warranty claim lifecycle.  All routes require a Bearer
token; the acting principal comes from ``g.principal`` (set by the identity
middleware) and is never read from the request body.

Endpoints (prefix /api/v1/warranty):
    GET    /claims                      list (query: search, status, claim_type,
                                        priority, dealer_id, assigned_to_id,
                                        date_from, date_to, sort_by, sort_order,
                                        page, page_size)
    POST   /claims                      create (body: claim fields, items[], submit_now)
    GET    /claims/stats                status buckets + money sums
    GET    /claims/<id>                 detail with notes, history, permission flags
    PUT    /claims/<id>                 edit draft / info_requested claim
    DELETE /claims/<id>                 delete draft
    POST   /claims/<id>/submit
    POST   /claims/<id>/review          body: action, note, total_approved,
                                        resolution_type, resolution_notes, item_decisions[]
    POST   /claims/<id>/respond         body: response, resubmit
    POST   /claims/<id>/assign          body: assignee_id (optional)
    POST   /claims/<id>/close           body: note (optional)
    GET    /claims/<id>/notes
    POST   /claims/<id>/notes           body: content, is_internal
    GET    /claims/<id>/history

Layer contract:
    - Blueprint: read JSON, call warranty_service, map result codes to HTTP.
    - NO db.session calls here; all writes owned by warranty_service.
    - NO inline role/permission checks; all business guards live in the service.
"""

import logging

from flask import Blueprint, g, jsonify, request

from dealer_portal.services import warranty_service
from dealer_portal.utils.errors import E, api_error, result_response

logger = logging.getLogger(__name__)

warranty_bp = Blueprint("warranty", __name__, url_prefix="/api/v1/warranty")


# ── Helpers ────────────────────────────────────────────────────────────────────


@warranty_bp.before_request
def _require_principal():
    if getattr(g, "principal", None) is None:
        return api_error(E.UNAUTHENTICATED, "Authentication required")
    return None


def _body():
    return request.get_json(silent=True) or {}


def _claim_not_found():
    return api_error(E.NOT_FOUND, "Warranty claim not found")


# ── Claims ─────────────────────────────────────────────────────────────────────


@warranty_bp.route("/claims", methods=["GET"])
def list_claims():
    return result_response(warranty_service.list_claims(request.args.to_dict(), g.principal))


@warranty_bp.route("/claims", methods=["POST"])
def create_claim():
    """File a claim.  Returns 201 with claim_id and claim_number."""
    return result_response(warranty_service.create_claim(_body(), g.principal), 201)


@warranty_bp.route("/claims/stats", methods=["GET"])
def claim_stats():
    return jsonify(warranty_service.get_stats(g.principal))


@warranty_bp.route("/claims/<claim_id>", methods=["GET"])
def get_claim(claim_id):
    claim = warranty_service.get_claim_by_id(claim_id, g.principal)
    if claim is None:
        return _claim_not_found()
    return jsonify(claim)


@warranty_bp.route("/claims/<claim_id>", methods=["PUT"])
def update_claim(claim_id):
    return result_response(warranty_service.update_claim(claim_id, _body(), g.principal))


@warranty_bp.route("/claims/<claim_id>", methods=["DELETE"])
def delete_claim(claim_id):
    return result_response(warranty_service.delete_claim(claim_id, g.principal))


# ── Lifecycle ──────────────────────────────────────────────────────────────────


@warranty_bp.route("/claims/<claim_id>/submit", methods=["POST"])
def submit_claim(claim_id):
    return result_response(warranty_service.submit_claim(claim_id, g.principal))


@warranty_bp.route("/claims/<claim_id>/review", methods=["POST"])
def review_claim(claim_id):
    """Approve / deny / partial / request_info.  Manufacturer reviewers only."""
    return result_response(warranty_service.review_claim(claim_id, _body(), g.principal))


@warranty_bp.route("/claims/<claim_id>/respond", methods=["POST"])
def respond_to_info_request(claim_id):
    return result_response(warranty_service.respond_to_info_request(claim_id, _body(), g.principal))


@warranty_bp.route("/claims/<claim_id>/assign", methods=["POST"])
def assign_claim(claim_id):
    assignee_id = _body().get("assignee_id")
    return result_response(warranty_service.assign_claim(claim_id, assignee_id, g.principal))


@warranty_bp.route("/claims/<claim_id>/close", methods=["POST"])
def close_claim(claim_id):
    return result_response(warranty_service.close_claim(claim_id, _body(), g.principal))


# ── Notes & history ────────────────────────────────────────────────────────────


@warranty_bp.route("/claims/<claim_id>/notes", methods=["GET"])
def list_notes(claim_id):
    notes = warranty_service.list_notes(claim_id, g.principal)
    if notes is None:
        return _claim_not_found()
    return jsonify({"items": notes, "total": len(notes)})


@warranty_bp.route("/claims/<claim_id>/notes", methods=["POST"])
def add_note(claim_id):
    return result_response(warranty_service.add_note(claim_id, _body(), g.principal), 201)


@warranty_bp.route("/claims/<claim_id>/history", methods=["GET"])
def claim_history(claim_id):
    history = warranty_service.get_claim_history(claim_id, g.principal)
    if history is None:
        return _claim_not_found()
    return jsonify({"items": history, "total": len(history)})
