"""
Warranty Claim Service.

Public operations of the warranty claim lifecycle.  Each mutating operation:
  1. resolves the actor's AccessScope once
  2. validates input before any write
  3. re-reads the claim with SELECT … FOR UPDATE inside the transaction
  4. guards the action against CLAIM_TRANSITIONS
  5. writes state, history row, system note and audit row, then commits once
  6. dispatches notifications after the commit

Mutations return ``{"success": True, ...}`` or
``{"success": False, "error": str, "code": E.*[, "details": {...}]}``;
read operations return the projection or None when the claim is not visible.

Usage:
    from dealer_portal.services import warranty_service
    from dealer_portal.services.warranty_access import Principal

    actor = Principal(user_id="u-1", role="dealer_user", dealer_id="d-1")
    result = warranty_service.create_claim(payload, actor)
"""

import functools
import logging
import math
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from dealer_portal.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TransitionError,
    ValidationError,
)
from dealer_portal.models import db
from dealer_portal.models.audit import write_audit
from dealer_portal.models.auth import User
from dealer_portal.models.warranty import (
    CREATED_DRAFT_NOTE,
    CREATED_SUBMITTED_NOTE,
    DEFAULT_NOTES,
    RESOLVING_ACTIONS,
    REVIEW_ACTIONS,
    REVIEW_RESOLUTIONS,
    ClaimAction,
    ClaimStatus,
    WarrantyClaim,
    WarrantyClaimItem,
    WarrantyClaimNote,
)
from dealer_portal.services.claim_number import insert_with_claim_number
from dealer_portal.services.notification import NotificationService
from dealer_portal.services.warranty_access import (
    apply_claim_scope,
    resolve_access_scope,
    visible_notes,
)
from dealer_portal.services.warranty_lifecycle import (
    get_available_actions,
    guard_action,
    record_transition,
)
from dealer_portal.services.warranty_totals import calculate_totals, line_total, round_money
from dealer_portal.services.warranty_validation import (
    validate_close,
    validate_create,
    validate_filters,
    validate_note,
    validate_respond,
    validate_review,
    validate_update,
)
from dealer_portal.utils.errors import E, failure_result

logger = logging.getLogger(__name__)

_CLAIM_FIELDS = (
    "claim_type", "priority", "product_id", "product_name", "serial_number",
    "model_number", "purchase_date", "install_date", "rv_unit_id", "vin",
    "customer_name", "customer_phone", "customer_email", "customer_address",
    "issue_description", "failure_date", "is_under_warranty",
)
_MONEY_INPUTS = ("labor_hours", "labor_rate", "parts_amount", "shipping_amount")

_SORT_COLUMNS = {
    "created_at": WarrantyClaim.created_at,
    "updated_at": WarrantyClaim.updated_at,
    "claim_number": WarrantyClaim.claim_number,
    "total_requested": WarrantyClaim.total_requested,
    "status": WarrantyClaim.status,
}


# ═════════════════════════════════════════════════════════════════════════════
# Result plumbing
# ═════════════════════════════════════════════════════════════════════════════

def _as_result(failure_message):
    """Convert domain exceptions raised by a mutation into a failure result.

    Every failure path rolls the session back so row locks are released and
    no partial state survives.
    """
    def decorator(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ValidationError as exc:
                db.session.rollback()
                code = E.VALIDATION_REQUIRED if _only_missing(exc.details) else E.VALIDATION_INVALID
                return failure_result(str(exc), code, exc.details)
            except NotFoundError as exc:
                db.session.rollback()
                logger.info("Warranty lookup missed: %s", exc)
                return failure_result(f"{_RESOURCE_LABELS.get(exc.resource, exc.resource)} not found", E.NOT_FOUND)
            except TransitionError as exc:
                db.session.rollback()
                return failure_result(str(exc), E.CONFLICT_STATE)
            except AuthorizationError as exc:
                db.session.rollback()
                logger.warning(
                    "Warranty action denied",
                    extra={"user_id": exc.user_id, "action": exc.action},
                )
                return failure_result(str(exc), E.FORBIDDEN)
            except ConflictError as exc:
                db.session.rollback()
                return failure_result(str(exc), E.CONFLICT_DUPLICATE)
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception(failure_message)
                return failure_result(failure_message, E.DATABASE)
        return wrapper
    return decorator


_RESOURCE_LABELS = {
    "WarrantyClaim": "Warranty claim",
    "WarrantyClaimItem": "Warranty claim item",
}


def _only_missing(details):
    return bool(details) and all(msg == "is required" for msg in details.values())


def _notify(helper, *args):
    """Fire-and-forget: a failed notification never fails the operation."""
    try:
        helper(*args)
    except Exception:
        db.session.rollback()
        logger.warning("Notification dispatch failed", exc_info=True,
                       extra={"helper": helper.__name__})


def _audit(claim, action, actor, diff=None):
    write_audit(
        entity_type="warranty_claim",
        entity_id=claim.id,
        action=f"warranty_claim.{action}",
        actor=actor.role,
        actor_user_id=actor.user_id,
        dealer_id=claim.dealer_id,
        diff=diff,
    )


def _now():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# Loading
# ═════════════════════════════════════════════════════════════════════════════

def _find_claim(claim_id, scope, *, lock=False):
    query = apply_claim_scope(WarrantyClaim.query, scope).filter(WarrantyClaim.id == claim_id)
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def _load_claim(claim_id, scope, *, lock=False):
    claim = _find_claim(claim_id, scope, lock=lock)
    if claim is None:
        raise NotFoundError("WarrantyClaim", claim_id)
    return claim


# ═════════════════════════════════════════════════════════════════════════════
# Items
# ═════════════════════════════════════════════════════════════════════════════

def _build_item(data, position):
    return WarrantyClaimItem(
        position=position,
        part_number=data.get("part_number"),
        part_name=data["part_name"],
        quantity=data["quantity"],
        unit_cost=data["unit_cost"],
        total_cost=round_money(line_total(data["quantity"], data["unit_cost"])),
        issue_type=data["issue_type"],
        issue_description=data.get("issue_description"),
    )


def replace_claim_items(claim, items):
    """Delete every item on *claim*, then create *items* in order.

    Review decisions on the old items are discarded with them.
    """
    claim.items.clear()
    db.session.flush()
    for position, data in enumerate(items):
        claim.items.append(_build_item(data, position))
    return claim.items


def _items_for_totals(claim):
    return [{"quantity": i.quantity, "unit_cost": i.unit_cost} for i in claim.items]


# ═════════════════════════════════════════════════════════════════════════════
# Create / edit / submit / delete
# ═════════════════════════════════════════════════════════════════════════════

@_as_result("Failed to create warranty claim")
def create_claim(data, actor):
    """File a new claim for the actor's dealer, as draft or directly submitted."""
    scope = resolve_access_scope(actor)
    if scope.is_admin or not scope.dealer_id:
        raise AuthorizationError(
            actor.user_id, "create", "Only dealer users can file warranty claims",
        )
    cleaned = validate_create(data)

    submit_now = cleaned.pop("submit_now")
    items = cleaned.pop("items")
    totals = calculate_totals(
        labor_hours=cleaned.get("labor_hours"),
        labor_rate=cleaned.get("labor_rate"),
        parts_amount=cleaned.get("parts_amount"),
        shipping_amount=cleaned.get("shipping_amount"),
        items=items,
    )
    status = ClaimStatus.SUBMITTED if submit_now else ClaimStatus.DRAFT
    now = _now()

    claim = WarrantyClaim(
        dealer_id=scope.dealer_id,
        submitted_by_id=actor.user_id,
        status=status.value,
        labor_hours=cleaned.get("labor_hours"),
        labor_rate=cleaned.get("labor_rate"),
        submitted_at=now if submit_now else None,
        **{f: cleaned.get(f) for f in _CLAIM_FIELDS if cleaned.get(f) is not None},
        **totals.as_columns(),
    )
    for position, item in enumerate(items or []):
        claim.items.append(_build_item(item, position))

    insert_with_claim_number(claim)
    record_transition(
        claim, None, status, actor.user_id,
        CREATED_SUBMITTED_NOTE if submit_now else CREATED_DRAFT_NOTE,
    )
    _audit(claim, "create", actor, {
        "status": {"old": None, "new": status.value},
        "claim_number": {"old": None, "new": claim.claim_number},
        "total_requested": {"old": None, "new": totals.total_requested},
    })
    db.session.commit()

    logger.info(
        "Warranty claim created",
        extra={"claim_id": claim.id, "claim_number": claim.claim_number, "status": status.value},
    )
    if submit_now:
        _notify(NotificationService.notify_claim_submitted, claim)
    return {"success": True, "claim_id": claim.id, "claim_number": claim.claim_number}


@_as_result("Failed to update warranty claim")
def update_claim(claim_id, data, actor):
    """Edit a draft or info-requested claim.  Supplied ``items`` replace all items."""
    scope = resolve_access_scope(actor)
    cleaned = validate_update(data)
    claim = _load_claim(claim_id, scope, lock=True)
    guard_action(claim, ClaimAction.EDIT, scope)

    diff = {}
    for field in _CLAIM_FIELDS + ("labor_hours", "labor_rate"):
        if field in cleaned:
            old, new = getattr(claim, field), cleaned[field]
            if field == "priority" and new is None:
                new = "normal"
            if old != new:
                diff[field] = {"old": old, "new": new}
                setattr(claim, field, new)

    if "items" in cleaned:
        replace_claim_items(claim, cleaned["items"])
        diff["items"] = {"old": None, "new": len(cleaned["items"])}

    # Amounts not supplied keep their stored values; an item list on the
    # claim always defines parts_amount.
    amounts = {f: cleaned[f] if f in cleaned else getattr(claim, f) for f in _MONEY_INPUTS}
    totals = calculate_totals(
        labor_hours=amounts["labor_hours"],
        labor_rate=amounts["labor_rate"],
        parts_amount=amounts["parts_amount"],
        shipping_amount=amounts["shipping_amount"],
        items=_items_for_totals(claim) if claim.items or "items" in cleaned else None,
    )
    for column, value in totals.as_columns().items():
        if getattr(claim, column) != value:
            diff[column] = {"old": getattr(claim, column), "new": value}
        setattr(claim, column, value)

    _audit(claim, "edit", actor, diff)
    db.session.commit()

    logger.info(
        "Warranty claim updated",
        extra={"claim_id": claim.id, "claim_number": claim.claim_number, "fields": sorted(diff)},
    )
    return {"success": True, "claim_id": claim.id}


@_as_result("Failed to submit warranty claim")
def submit_claim(claim_id, actor):
    """Move a draft into the review queue."""
    scope = resolve_access_scope(actor)
    claim = _load_claim(claim_id, scope, lock=True)
    target = guard_action(claim, ClaimAction.SUBMIT, scope)

    previous = claim.status
    claim.status = target.value
    if claim.submitted_at is None:
        claim.submitted_at = _now()
    record_transition(claim, previous, target, actor.user_id, action=ClaimAction.SUBMIT)
    _audit(claim, "submit", actor, {"status": {"old": previous, "new": target.value}})
    db.session.commit()

    logger.info(
        "Warranty claim submitted",
        extra={"claim_id": claim.id, "claim_number": claim.claim_number},
    )
    _notify(NotificationService.notify_claim_submitted, claim)
    return {"success": True, "claim_id": claim.id, "claim_number": claim.claim_number}


@_as_result("Failed to delete warranty claim")
def delete_claim(claim_id, actor):
    """Hard-delete a draft.  Its claim number is never reissued."""
    scope = resolve_access_scope(actor)
    claim = _load_claim(claim_id, scope, lock=True)
    guard_action(claim, ClaimAction.DELETE, scope)

    claim_number = claim.claim_number
    _audit(claim, "delete", actor, {
        "claim_number": {"old": claim_number, "new": None},
        "status": {"old": claim.status, "new": None},
    })
    db.session.delete(claim)
    db.session.commit()

    logger.info(
        "Warranty claim deleted",
        extra={"claim_id": claim_id, "claim_number": claim_number},
    )
    return {"success": True}


# ═════════════════════════════════════════════════════════════════════════════
# Review workflow
# ═════════════════════════════════════════════════════════════════════════════

def _apply_item_decisions(claim, decisions):
    """Write review fields onto the referenced items.

    All item ids are checked before the first write.
    """
    by_id = {item.id: item for item in claim.items}
    for decision in decisions:
        if decision["item_id"] not in by_id:
            raise NotFoundError("WarrantyClaimItem", decision["item_id"])

    for decision in decisions:
        item = by_id[decision["item_id"]]
        item.approved = decision["approved"]
        item.approved_qty = decision["approved_qty"]
        item.approved_amount = (
            round_money(decision["approved_amount"])
            if decision["approved_amount"] is not None else None
        )
        item.denial_reason = decision["denial_reason"]


def _approved_total(claim, action, explicit, decisions):
    """total_approved for a review action; returns the stored value when untouched."""
    if action is ClaimAction.DENY:
        return round_money(explicit) if explicit is not None else None
    if action not in RESOLVING_ACTIONS:
        return claim.total_approved
    if explicit is not None:
        return round_money(explicit)
    if decisions:
        return sum(
            (round_money(d["approved_amount"]) for d in decisions if d["approved_amount"] is not None),
            Decimal("0.00"),
        )
    if action is ClaimAction.APPROVE:
        return claim.total_requested
    return claim.total_approved


@_as_result("Failed to review warranty claim")
def review_claim(claim_id, data, actor):
    """Approve, deny, partially approve, or request more information.

    The reviewer becomes the claim's assignee.  reviewed_at / resolved_at
    are stamped on the first qualifying action only.
    """
    scope = resolve_access_scope(actor)
    cleaned = validate_review(data)
    action = cleaned["action"]
    claim = _load_claim(claim_id, scope, lock=True)
    target = guard_action(claim, action, scope)

    decisions = cleaned["item_decisions"] or []
    if decisions:
        _apply_item_decisions(claim, decisions)

    previous = claim.status
    old_total = claim.total_approved
    now = _now()

    claim.total_approved = _approved_total(claim, action, cleaned["total_approved"], decisions)
    if action in RESOLVING_ACTIONS:
        default_type = REVIEW_RESOLUTIONS[action]
        claim.resolution_type = (
            default_type if action is ClaimAction.DENY
            else cleaned["resolution_type"] or default_type
        )
    if cleaned["resolution_notes"] is not None:
        claim.resolution_notes = cleaned["resolution_notes"]
    if claim.reviewed_at is None:
        claim.reviewed_at = now
    if action in RESOLVING_ACTIONS and claim.resolved_at is None:
        claim.resolved_at = now
    claim.assigned_to_id = actor.user_id
    claim.status = target.value

    note_text = cleaned["note"] or DEFAULT_NOTES[action]
    record_transition(claim, previous, target, actor.user_id, note_text)
    db.session.add(WarrantyClaimNote(
        claim_id=claim.id,
        user_id=actor.user_id,
        content=note_text,
        is_internal=False,
        is_system_note=True,
    ))
    _audit(claim, action.value, actor, {
        "status": {"old": previous, "new": target.value},
        "total_approved": {"old": old_total, "new": claim.total_approved},
        "resolution_type": {"old": None, "new": claim.resolution_type},
        "item_decisions": len(decisions),
    })
    db.session.commit()

    logger.info(
        "Warranty claim reviewed",
        extra={
            "claim_id": claim.id,
            "claim_number": claim.claim_number,
            "action": action.value,
            "from_status": previous,
            "to_status": target.value,
        },
    )
    _notify(NotificationService.notify_claim_reviewed, claim, action)
    return {"success": True, "claim_id": claim.id}


@_as_result("Failed to respond to information request")
def respond_to_info_request(claim_id, data, actor):
    """Dealer answer to an info request, optionally resubmitting for review."""
    scope = resolve_access_scope(actor)
    cleaned = validate_respond(data)
    claim = _load_claim(claim_id, scope, lock=True)
    target = guard_action(claim, ClaimAction.RESPOND, scope)

    db.session.add(WarrantyClaimNote(
        claim_id=claim.id,
        user_id=actor.user_id,
        content=cleaned["response"],
        is_internal=False,
        is_system_note=False,
    ))

    previous = claim.status
    if cleaned["resubmit"]:
        claim.status = target.value
        record_transition(claim, previous, target, actor.user_id, action=ClaimAction.RESPOND)
    _audit(claim, "respond", actor, {
        "status": {"old": previous, "new": claim.status},
        "resubmitted": cleaned["resubmit"],
    })
    db.session.commit()

    logger.info(
        "Warranty info request answered",
        extra={
            "claim_id": claim.id,
            "claim_number": claim.claim_number,
            "resubmitted": cleaned["resubmit"],
        },
    )
    _notify(NotificationService.notify_info_provided, claim, cleaned["resubmit"])
    return {"success": True, "claim_id": claim.id, "claim_number": claim.claim_number}


@_as_result("Failed to assign warranty claim")
def assign_claim(claim_id, assignee_id, actor):
    """Assign a reviewer (default: the actor).  A submitted claim moves to under_review."""
    scope = resolve_access_scope(actor)
    claim = _load_claim(claim_id, scope, lock=True)
    target = guard_action(claim, ClaimAction.ASSIGN, scope)

    assignee_id = assignee_id or actor.user_id
    assignee = db.session.get(User, assignee_id)
    if assignee is None or not assignee.is_active or not assignee.is_admin:
        raise ValidationError(
            "Assignee must be an active manufacturer reviewer",
            details={"assignee_id": "must be an active admin user"},
        )

    previous = claim.status
    old_assignee = claim.assigned_to_id
    claim.assigned_to_id = assignee.id
    claim.status = target.value
    record_transition(claim, previous, target, actor.user_id, action=ClaimAction.ASSIGN)
    _audit(claim, "assign", actor, {
        "assigned_to_id": {"old": old_assignee, "new": assignee.id},
        "status": {"old": previous, "new": target.value},
    })
    db.session.commit()

    logger.info(
        "Warranty claim assigned",
        extra={"claim_id": claim.id, "claim_number": claim.claim_number, "assignee_id": assignee.id},
    )
    if assignee.id != actor.user_id:
        _notify(NotificationService.notify_claim_assigned, claim)
    return {"success": True, "claim_id": claim.id}


@_as_result("Failed to close warranty claim")
def close_claim(claim_id, data, actor):
    scope = resolve_access_scope(actor)
    cleaned = validate_close(data)
    claim = _load_claim(claim_id, scope, lock=True)
    target = guard_action(claim, ClaimAction.CLOSE, scope)

    previous = claim.status
    claim.status = target.value
    record_transition(claim, previous, target, actor.user_id, cleaned["note"], action=ClaimAction.CLOSE)
    _audit(claim, "close", actor, {"status": {"old": previous, "new": target.value}})
    db.session.commit()

    logger.info(
        "Warranty claim closed",
        extra={"claim_id": claim.id, "claim_number": claim.claim_number, "from_status": previous},
    )
    _notify(NotificationService.notify_claim_closed, claim)
    return {"success": True, "claim_id": claim.id}


# ═════════════════════════════════════════════════════════════════════════════
# Notes & history
# ═════════════════════════════════════════════════════════════════════════════

@_as_result("Failed to add note")
def add_note(claim_id, data, actor):
    scope = resolve_access_scope(actor)
    cleaned = validate_note(data)
    claim = _load_claim(claim_id, scope)
    if cleaned["is_internal"] and not scope.can_write_internal_notes:
        raise AuthorizationError(actor.user_id, "add_internal_note", "Only reviewers can add internal notes")

    note = WarrantyClaimNote(
        claim_id=claim.id,
        user_id=actor.user_id,
        content=cleaned["content"],
        is_internal=cleaned["is_internal"],
        is_system_note=False,
    )
    db.session.add(note)
    db.session.flush()
    write_audit(
        entity_type="warranty_claim_note",
        entity_id=note.id,
        action="warranty_claim_note.create",
        actor=actor.role,
        actor_user_id=actor.user_id,
        dealer_id=claim.dealer_id,
        diff={"claim_id": claim.id, "is_internal": note.is_internal},
    )
    db.session.commit()
    return {"success": True, "note_id": note.id}


def list_notes(claim_id, actor):
    """Visible notes, newest first; None when the claim is not visible."""
    scope = resolve_access_scope(actor)
    claim = _find_claim(claim_id, scope)
    if claim is None:
        return None
    return [n.to_dict() for n in visible_notes(claim.notes, scope)]


def get_claim_history(claim_id, actor):
    """Status history, newest first; None when the claim is not visible."""
    scope = resolve_access_scope(actor)
    claim = _find_claim(claim_id, scope)
    if claim is None:
        return None
    return [h.to_dict() for h in claim.status_history]


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════

def get_claim_by_id(claim_id, actor):
    """Full claim projection with relations and permission flags, or None."""
    scope = resolve_access_scope(actor)
    claim = _find_claim(claim_id, scope)
    if claim is None:
        return None

    actions = set(get_available_actions(claim, scope))
    data = claim.to_dict()
    data.update({
        "dealer": claim.dealer.to_brief() if claim.dealer else None,
        "submitted_by": claim.submitted_by.to_brief() if claim.submitted_by else None,
        "assigned_to": claim.assigned_to.to_brief() if claim.assigned_to else None,
        "items": [i.to_dict() for i in claim.items],
        "notes": [n.to_dict() for n in visible_notes(claim.notes, scope)],
        "status_history": [h.to_dict() for h in claim.status_history],
        "available_actions": sorted(actions),
        "can_edit": ClaimAction.EDIT.value in actions,
        "can_submit": ClaimAction.SUBMIT.value in actions,
        "can_review": any(a.value in actions for a in REVIEW_ACTIONS),
        "can_respond": ClaimAction.RESPOND.value in actions,
        "can_delete": ClaimAction.DELETE.value in actions,
        "can_close": ClaimAction.CLOSE.value in actions,
        "is_admin": scope.is_admin,
    })
    return data


def _as_utc(value):
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@_as_result("Failed to list warranty claims")
def list_claims(filters, actor):
    """Paginated, scoped claim list."""
    scope = resolve_access_scope(actor)
    f = validate_filters(filters)

    q = apply_claim_scope(WarrantyClaim.query, scope)
    if f["search"]:
        pattern = f"%{f['search']}%"
        q = q.filter(or_(
            WarrantyClaim.claim_number.ilike(pattern),
            WarrantyClaim.product_name.ilike(pattern),
            WarrantyClaim.serial_number.ilike(pattern),
            WarrantyClaim.customer_name.ilike(pattern),
        ))
    if f["status"]:
        q = q.filter(WarrantyClaim.status == f["status"])
    if f["claim_type"]:
        q = q.filter(WarrantyClaim.claim_type == f["claim_type"])
    if f["priority"]:
        q = q.filter(WarrantyClaim.priority == f["priority"])
    if f["dealer_id"] and scope.can_read_all:
        q = q.filter(WarrantyClaim.dealer_id == f["dealer_id"])
    if f["assigned_to_id"]:
        q = q.filter(WarrantyClaim.assigned_to_id == f["assigned_to_id"])
    if f["date_from"]:
        q = q.filter(WarrantyClaim.created_at >= _as_utc(f["date_from"]))
    if f["date_to"]:
        date_to = _as_utc(f["date_to"])
        if date_to.time() == time.min:
            # Bare date: include the whole day
            q = q.filter(WarrantyClaim.created_at < date_to + timedelta(days=1))
        else:
            q = q.filter(WarrantyClaim.created_at <= date_to)

    total = q.count()
    column = _SORT_COLUMNS[f["sort_by"]]
    ordering = column.asc() if f["sort_order"] == "asc" else column.desc()
    claims = (
        q.order_by(ordering, WarrantyClaim.id)
        .offset((f["page"] - 1) * f["page_size"])
        .limit(f["page_size"])
        .all()
    )
    return {
        "success": True,
        "claims": [c.to_summary() for c in claims],
        "pagination": {
            "page": f["page"],
            "page_size": f["page_size"],
            "total": total,
            "total_pages": math.ceil(total / f["page_size"]) if total else 0,
        },
    }


def get_stats(actor):
    """Status buckets and money sums over the actor's visible claims."""
    scope = resolve_access_scope(actor)

    counts = dict(
        apply_claim_scope(
            db.session.query(WarrantyClaim.status, func.count(WarrantyClaim.id)), scope,
        )
        .group_by(WarrantyClaim.status)
        .all()
    )
    requested, approved = (
        apply_claim_scope(
            db.session.query(
                func.coalesce(func.sum(WarrantyClaim.total_requested), 0),
                func.coalesce(func.sum(WarrantyClaim.total_approved), 0),
            ),
            scope,
        )
        .filter(WarrantyClaim.status != ClaimStatus.DRAFT.value)
        .one()
    )

    def bucket(*statuses):
        return sum(counts.get(s.value, 0) for s in statuses)

    return {
        "total": sum(counts.values()),
        "pending": bucket(ClaimStatus.DRAFT, ClaimStatus.SUBMITTED),
        "in_review": bucket(ClaimStatus.UNDER_REVIEW, ClaimStatus.INFO_REQUESTED),
        "approved": bucket(ClaimStatus.APPROVED, ClaimStatus.PARTIAL),
        "denied": bucket(ClaimStatus.DENIED),
        "closed": bucket(ClaimStatus.CLOSED),
        "total_requested": float(round_money(requested)),
        "total_approved": float(round_money(approved)),
    }
