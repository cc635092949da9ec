"""
Tests: warranty access scope.

Admin-like roles see the whole network and internal notes; dealer-like
roles see only their dealer's claims, and claims outside the scope look
missing rather than forbidden.
"""

import pytest

from dealer_portal.models import db as _db
from dealer_portal.models.warranty import WarrantyClaim, WarrantyClaimNote
from dealer_portal.services import warranty_service
from dealer_portal.services.warranty_access import (
    Principal,
    apply_claim_scope,
    resolve_access_scope,
    visible_notes,
)


def _principal(user) -> Principal:
    return Principal(user_id=user.id, role=user.role, dealer_id=user.dealer_id)


def _create(user, claim_payload, **overrides) -> str:
    result = warranty_service.create_claim(claim_payload(**overrides), _principal(user))
    assert result["success"], result
    return result["claim_id"]


# ═════════════════════════════════════════════════════════════════════════════
# resolve_access_scope
# ═════════════════════════════════════════════════════════════════════════════

class TestResolveScope:
    @pytest.mark.parametrize("role", ["admin", "super_admin"])
    def test_admin_like_roles(self, role):
        scope = resolve_access_scope(Principal("u-1", role))
        assert scope.can_read_all
        assert scope.restrict_to_dealer_id is None
        assert scope.can_see_internal_notes
        assert scope.can_write_internal_notes
        assert scope.can_review
        assert scope.is_admin

    @pytest.mark.parametrize("role", ["dealer_admin", "dealer_user"])
    def test_dealer_like_roles(self, role):
        scope = resolve_access_scope(Principal("u-2", role, "dealer-9"))
        assert not scope.can_read_all
        assert scope.restrict_to_dealer_id == "dealer-9"
        assert not scope.can_see_internal_notes
        assert not scope.can_write_internal_notes
        assert not scope.can_review

    def test_admin_with_dealer_still_reads_all(self):
        scope = resolve_access_scope(Principal("u-3", "super_admin", "dealer-9"))
        assert scope.can_read_all
        assert scope.restrict_to_dealer_id is None
        assert scope.dealer_id == "dealer-9"


# ═════════════════════════════════════════════════════════════════════════════
# apply_claim_scope
# ═════════════════════════════════════════════════════════════════════════════

class TestApplyClaimScope:
    def test_dealer_sees_only_own_claims(self, dealer_user, other_dealer_user, claim_payload):
        own_id = _create(dealer_user, claim_payload)
        _create(other_dealer_user, claim_payload)

        scope = resolve_access_scope(_principal(dealer_user))
        ids = [c.id for c in apply_claim_scope(WarrantyClaim.query, scope).all()]
        assert ids == [own_id]

    def test_admin_sees_everything(self, dealer_user, other_dealer_user, admin_user, claim_payload):
        _create(dealer_user, claim_payload)
        _create(other_dealer_user, claim_payload)

        scope = resolve_access_scope(_principal(admin_user))
        assert apply_claim_scope(WarrantyClaim.query, scope).count() == 2

    def test_dealer_role_without_dealer_sees_nothing(self, dealer_user, claim_payload):
        _create(dealer_user, claim_payload)
        scope = resolve_access_scope(Principal("orphan", "dealer_user", None))
        assert apply_claim_scope(WarrantyClaim.query, scope).count() == 0

    def test_foreign_claim_reads_as_missing(self, dealer_user, other_dealer_user, claim_payload):
        claim_id = _create(other_dealer_user, claim_payload)
        actor = _principal(dealer_user)

        assert warranty_service.get_claim_by_id(claim_id, actor) is None
        assert warranty_service.list_notes(claim_id, actor) is None
        assert warranty_service.get_claim_history(claim_id, actor) is None

        result = warranty_service.submit_claim(claim_id, actor)
        assert result["success"] is False
        assert result["code"] == "ERR_NOT_FOUND"


# ═════════════════════════════════════════════════════════════════════════════
# visible_notes
# ═════════════════════════════════════════════════════════════════════════════

class TestVisibleNotes:
    def _notes(self):
        return [
            WarrantyClaimNote(content="public", is_internal=False),
            WarrantyClaimNote(content="internal", is_internal=True),
        ]

    def test_dealer_loses_internal_notes(self):
        scope = resolve_access_scope(Principal("u", "dealer_user", "d"))
        assert [n.content for n in visible_notes(self._notes(), scope)] == ["public"]

    def test_admin_keeps_internal_notes(self):
        scope = resolve_access_scope(Principal("u", "admin"))
        assert [n.content for n in visible_notes(self._notes(), scope)] == ["public", "internal"]

    def test_internal_note_hidden_on_every_read_path(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)
        admin = _principal(admin_user)
        assert warranty_service.add_note(
            claim_id, {"content": "Check supplier batch", "is_internal": True}, admin,
        )["success"]
        assert warranty_service.add_note(
            claim_id, {"content": "We are looking into it"}, admin,
        )["success"]

        dealer = _principal(dealer_user)
        detail_notes = warranty_service.get_claim_by_id(claim_id, dealer)["notes"]
        listed_notes = warranty_service.list_notes(claim_id, dealer)
        for notes in (detail_notes, listed_notes):
            assert [n["content"] for n in notes] == ["We are looking into it"]

        assert len(warranty_service.list_notes(claim_id, admin)) == 2
        assert _db.session.query(WarrantyClaimNote).count() == 2
