"""
Warranty Claim Lifecycle.

Guards and records status transitions against CLAIM_TRANSITIONS:
  - validate_transition: is the action legal from the current status?
  - guard_action: actor-class check, then transition check; returns the target
  - get_available_actions: what the given scope may do next (UI flags)
  - record_transition: append the status-history row

Usage:
    from dealer_portal.services.warranty_lifecycle import guard_action, record_transition

    target = guard_action(claim, ClaimAction.APPROVE, scope)
    previous = claim.status
    claim.status = target.value
    record_transition(claim, previous, target, scope.user_id, note)
"""

from dealer_portal.core.exceptions import AuthorizationError, TransitionError
from dealer_portal.models import db
from dealer_portal.models.warranty import (
    CLAIM_TRANSITIONS,
    DEFAULT_NOTES,
    ActorClass,
    ClaimAction,
    ClaimStatus,
    WarrantyClaimStatusHistory,
)

_ACTOR_DENIED = {
    ActorClass.DEALER_OWNER: "Only the owning dealer can perform this action",
    ActorClass.MANUFACTURER: "Only manufacturer reviewers can perform this action",
}


def validate_transition(claim, action: ClaimAction) -> dict:
    """
    Validate whether an action is valid for the claim's current status.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = CLAIM_TRANSITIONS.get(action)
    if rule is None:
        return {"valid": False, "from": claim.status, "to": None,
                "reason": f"Unknown action: {action}"}

    current = claim.status_enum
    if current not in rule.sources:
        return {"valid": False, "from": claim.status, "to": None,
                "reason": f"Cannot '{action.value}' from status '{claim.status}'"}

    return {"valid": True, "from": claim.status, "to": rule.resolve(current).value, "reason": None}


def guard_action(claim, action: ClaimAction, scope) -> ClaimStatus:
    """Check actor class then status for *action*; return the target status.

    Raises:
        AuthorizationError: the scope is not the actor class the rule names
        TransitionError: the action is not legal from the current status
    """
    rule = CLAIM_TRANSITIONS[action]
    if not scope.acts_as(rule.actor, claim):
        raise AuthorizationError(scope.user_id, action.value, _ACTOR_DENIED[rule.actor])

    validation = validate_transition(claim, action)
    if not validation["valid"]:
        raise TransitionError(claim.claim_number, action.value, claim.status, validation["reason"])
    return ClaimStatus(validation["to"])


def get_available_actions(claim, scope) -> list[str]:
    """Actions *scope* could take on *claim* right now."""
    available = []
    for action, rule in CLAIM_TRANSITIONS.items():
        if claim.status_enum in rule.sources and scope.acts_as(rule.actor, claim):
            available.append(action.value)
    return available


def record_transition(claim, from_status, to_status, changed_by_id, note=None, *, action=None):
    """Append one status-history row.  ``from_status`` is None only on creation.

    When *note* is empty the default text for *action* is used.
    """
    if not note and action is not None:
        note = DEFAULT_NOTES.get(action)
    entry = WarrantyClaimStatusHistory(
        claim_id=claim.id,
        from_status=_value(from_status),
        to_status=_value(to_status),
        changed_by_id=changed_by_id,
        note=note,
    )
    db.session.add(entry)
    return entry


def _value(status):
    if status is None:
        return None
    return status.value if isinstance(status, ClaimStatus) else status
