"""
Warranty access scope resolution.

Every warranty operation resolves the acting principal into an AccessScope
exactly once, then consults only the scope object:

    scope = resolve_access_scope(principal)
    query = apply_claim_scope(WarrantyClaim.query, scope)
    notes = visible_notes(claim.notes, scope)

Admin-like roles (super_admin, admin) read the whole network and see internal
notes.  Every other role is dealer-like: limited to its own dealer's claims,
internal notes stripped server-side.  Claims outside the scope are reported
as not found, never as forbidden.
"""

from __future__ import annotations

from dataclasses import dataclass

from dealer_portal.models.auth import ADMIN_ROLES
from dealer_portal.models.warranty import ActorClass, WarrantyClaim


@dataclass(frozen=True)
class Principal:
    """Acting user as supplied by the identity provider."""

    user_id: str
    role: str
    dealer_id: str | None = None


@dataclass(frozen=True)
class AccessScope:
    """Capabilities of one principal over warranty claims."""

    user_id: str
    dealer_id: str | None
    can_read_all: bool
    restrict_to_dealer_id: str | None
    can_see_internal_notes: bool
    can_write_internal_notes: bool
    can_review: bool

    @property
    def is_admin(self) -> bool:
        return self.can_read_all

    def can_read(self, claim: WarrantyClaim) -> bool:
        if self.can_read_all:
            return True
        return self.restrict_to_dealer_id is not None and claim.dealer_id == self.restrict_to_dealer_id

    def owns(self, claim: WarrantyClaim) -> bool:
        """Dealer ownership, independent of admin visibility."""
        return self.dealer_id is not None and claim.dealer_id == self.dealer_id

    def acts_as(self, actor: ActorClass, claim: WarrantyClaim) -> bool:
        if actor is ActorClass.MANUFACTURER:
            return self.can_review
        return self.owns(claim)


def resolve_access_scope(principal: Principal) -> AccessScope:
    is_admin = principal.role in ADMIN_ROLES
    return AccessScope(
        user_id=principal.user_id,
        dealer_id=principal.dealer_id,
        can_read_all=is_admin,
        restrict_to_dealer_id=None if is_admin else principal.dealer_id,
        can_see_internal_notes=is_admin,
        can_write_internal_notes=is_admin,
        can_review=is_admin,
    )


def apply_claim_scope(query, scope: AccessScope):
    """Restrict a WarrantyClaim query to what *scope* may read."""
    if scope.can_read_all:
        return query
    if scope.restrict_to_dealer_id is None:
        # Dealer-like principal without a dealer sees nothing
        return query.filter(WarrantyClaim.id.is_(None))
    return query.filter(WarrantyClaim.dealer_id == scope.restrict_to_dealer_id)


def visible_notes(notes, scope: AccessScope) -> list:
    """Drop internal notes unless the scope may see them."""
    if scope.can_see_internal_notes:
        return list(notes)
    return [n for n in notes if not n.is_internal]
