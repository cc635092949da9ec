"""
Tests: warranty claim service operations.

Exercises every public operation of dealer_portal.services.warranty_service
against the in-memory database: create, edit, submit, review (approve /
deny / partial / request_info), respond, assign, close, delete, notes,
history, detail flags, listing and stats.  Also checks the one-transaction
rule (a failure leaves no partial rows) and that notification failures
never fail an operation.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from dealer_portal.models import db as _db
from dealer_portal.models.audit import AuditLog
from dealer_portal.models.auth import User
from dealer_portal.models.notification import Notification
from dealer_portal.models.warranty import (
    WarrantyClaim,
    WarrantyClaimItem,
    WarrantyClaimNote,
    WarrantyClaimSequence,
    WarrantyClaimStatusHistory,
)
from dealer_portal.services import warranty_service
from dealer_portal.services.notification import NotificationService
from dealer_portal.services.warranty_access import Principal
from dealer_portal.utils.errors import E


# ── Helpers ──────────────────────────────────────────────────────────────────


def _principal(user) -> Principal:
    return Principal(user_id=user.id, role=user.role, dealer_id=user.dealer_id)


def _create(user, claim_payload, **overrides) -> dict:
    result = warranty_service.create_claim(claim_payload(**overrides), _principal(user))
    assert result["success"], result
    return result


def _claim(claim_id) -> WarrantyClaim:
    return _db.session.get(WarrantyClaim, claim_id)


def _review(claim_id, admin, **data) -> dict:
    return warranty_service.review_claim(claim_id, data, _principal(admin))


def _history(claim_id) -> list[WarrantyClaimStatusHistory]:
    return (
        WarrantyClaimStatusHistory.query
        .filter_by(claim_id=claim_id)
        .order_by(WarrantyClaimStatusHistory.created_at)
        .all()
    )


def _audit_actions(entity_id) -> list[str]:
    return [
        a.action for a in AuditLog.query.filter_by(entity_id=entity_id).order_by(AuditLog.id)
    ]


TWO_ITEMS = [
    {"part_name": "Slide-out gear", "quantity": 2, "unit_cost": "45.50", "issue_type": "worn"},
    {"part_name": "Control board", "quantity": 1, "unit_cost": 210, "issue_type": "defective"},
]


# ═════════════════════════════════════════════════════════════════════════════
# create_claim
# ═════════════════════════════════════════════════════════════════════════════

class TestCreateClaim:
    def test_creates_draft_with_number_history_and_audit(self, dealer_user, claim_payload):
        result = _create(dealer_user, claim_payload)

        claim = _claim(result["claim_id"])
        assert claim.status == "draft"
        assert claim.claim_number == result["claim_number"]
        assert claim.claim_number.startswith("WC-")
        assert claim.claim_number.endswith("-00001")
        assert claim.dealer_id == dealer_user.dealer_id
        assert claim.submitted_by_id == dealer_user.id
        assert claim.submitted_at is None
        assert claim.priority == "normal"

        history = _history(claim.id)
        assert len(history) == 1
        assert history[0].from_status is None
        assert history[0].to_status == "draft"
        assert history[0].note == "Warranty claim created as draft"
        assert _audit_actions(claim.id) == ["warranty_claim.create"]

    def test_submit_now_creates_submitted_claim(self, dealer_user, claim_payload):
        result = _create(dealer_user, claim_payload, submit_now=True)

        claim = _claim(result["claim_id"])
        assert claim.status == "submitted"
        assert claim.submitted_at is not None
        history = _history(claim.id)
        assert [(h.from_status, h.to_status) for h in history] == [(None, "submitted")]
        assert history[0].note == "Warranty claim submitted"
        assert Notification.query.filter_by(recipient="admins", entity_id=claim.id).count() == 1

    def test_reference_totals(self, dealer_user, claim_payload):
        result = _create(
            dealer_user, claim_payload,
            labor_hours=2, labor_rate=75, shipping_amount=10.005,
            items=[{"part_name": "Hinge", "quantity": 3, "unit_cost": 12.333, "issue_type": "damaged"}],
        )
        data = _claim(result["claim_id"]).to_dict()
        assert data["labor_amount"] == 150.00
        assert data["parts_amount"] == 37.00
        assert data["shipping_amount"] == 10.01
        assert data["total_requested"] == 197.01

    def test_items_are_stored_in_order_with_line_totals(self, dealer_user, claim_payload):
        result = _create(dealer_user, claim_payload, items=TWO_ITEMS)
        items = _claim(result["claim_id"]).items
        assert [i.part_name for i in items] == ["Slide-out gear", "Control board"]
        assert [i.total_cost for i in items] == [Decimal("91.00"), Decimal("210.00")]
        assert _claim(result["claim_id"]).parts_amount == Decimal("301.00")

    def test_explicit_parts_amount_without_items(self, dealer_user, claim_payload):
        result = _create(dealer_user, claim_payload, items=None, parts_amount="88.40")
        assert _claim(result["claim_id"]).parts_amount == Decimal("88.40")

    def test_numbers_increase_per_claim(self, dealer_user, claim_payload):
        first = _create(dealer_user, claim_payload)["claim_number"]
        second = _create(dealer_user, claim_payload)["claim_number"]
        assert int(second.rsplit("-", 1)[1]) == int(first.rsplit("-", 1)[1]) + 1

    def test_short_description_is_invalid_and_writes_nothing(self, dealer_user, claim_payload):
        result = warranty_service.create_claim(
            claim_payload(issue_description="broken"), _principal(dealer_user),
        )
        assert result["success"] is False
        assert result["code"] == E.VALIDATION_INVALID
        assert "issue_description" in result["details"]
        assert WarrantyClaim.query.count() == 0
        assert WarrantyClaimSequence.query.count() == 0

    def test_missing_required_field(self, dealer_user, claim_payload):
        result = warranty_service.create_claim(
            claim_payload(product_name=""), _principal(dealer_user),
        )
        assert result["code"] == E.VALIDATION_REQUIRED
        assert result["details"] == {"product_name": "is required"}

    @pytest.mark.parametrize("field, value", [
        ("claim_type", "lightning_strike"),
        ("priority", "whenever"),
        ("customer_email", "not-an-email"),
        ("labor_hours", -1),
        ("failure_date", "31/31/2026"),
    ])
    def test_invalid_fields(self, dealer_user, claim_payload, field, value):
        result = warranty_service.create_claim(
            claim_payload(**{field: value}), _principal(dealer_user),
        )
        assert result["success"] is False
        assert field in result["details"]

    def test_item_errors_are_indexed(self, dealer_user, claim_payload):
        result = warranty_service.create_claim(
            claim_payload(items=[{"part_name": "Fan", "quantity": 0, "issue_type": "worn"}]),
            _principal(dealer_user),
        )
        assert result["details"] == {"items[0].quantity": "must be at least 1"}

    def test_reviewer_cannot_file_claims(self, admin_user, claim_payload):
        result = warranty_service.create_claim(claim_payload(), _principal(admin_user))
        assert result["code"] == E.FORBIDDEN


# ═════════════════════════════════════════════════════════════════════════════
# update_claim
# ═════════════════════════════════════════════════════════════════════════════

class TestUpdateClaim:
    def test_edit_draft_fields_and_totals(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        result = warranty_service.update_claim(
            claim_id, {"product_name": "Awning Motor 24V", "labor_hours": 3}, _principal(dealer_user),
        )

        assert result == {"success": True, "claim_id": claim_id}
        claim = _claim(claim_id)
        assert claim.product_name == "Awning Motor 24V"
        assert claim.labor_amount == Decimal("225.00")
        # parts still come from the untouched item list
        assert claim.parts_amount == Decimal("120.00")
        assert claim.total_requested == Decimal("355.00")
        assert _audit_actions(claim_id) == ["warranty_claim.create", "warranty_claim.edit"]

    def test_unrelated_edit_keeps_totals_for_fine_grained_input(self, dealer_user, claim_payload):
        claim_id = _create(
            dealer_user, claim_payload,
            labor_hours="1.125", labor_rate=100, shipping_amount="10.005",
            items=[{"part_name": "Rivet", "quantity": 1000, "unit_cost": "0.12345",
                    "issue_type": "missing"}],
        )["claim_id"]
        claim = _claim(claim_id)
        before = (claim.labor_amount, claim.parts_amount, claim.shipping_amount,
                  claim.total_requested)

        assert claim.labor_hours == Decimal("1.13")
        assert claim.items[0].unit_cost == Decimal("0.1235")
        assert before == (Decimal("113.00"), Decimal("123.50"), Decimal("10.01"),
                          Decimal("246.51"))

        result = warranty_service.update_claim(
            claim_id, {"serial_number": "AM-55599"}, _principal(dealer_user),
        )

        assert result["success"] is True
        _db.session.expire_all()
        claim = _claim(claim_id)
        assert (claim.labor_amount, claim.parts_amount, claim.shipping_amount,
                claim.total_requested) == before

    def test_items_are_replaced(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        old_item_id = _claim(claim_id).items[0].id

        warranty_service.update_claim(claim_id, {"items": TWO_ITEMS}, _principal(dealer_user))

        claim = _claim(claim_id)
        assert [i.part_name for i in claim.items] == ["Slide-out gear", "Control board"]
        assert _db.session.get(WarrantyClaimItem, old_item_id) is None
        assert claim.parts_amount == Decimal("301.00")

    def test_empty_item_list_zeroes_parts(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        warranty_service.update_claim(claim_id, {"items": []}, _principal(dealer_user))

        claim = _claim(claim_id)
        assert claim.items == []
        assert claim.parts_amount == Decimal("0.00")
        assert claim.total_requested == Decimal("160.00")

    def test_edit_allowed_while_info_requested(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="request_info", note="Send photos of the motor")

        result = warranty_service.update_claim(
            claim_id, {"serial_number": "AM-55502"}, _principal(dealer_user),
        )
        assert result["success"] is True
        assert _claim(claim_id).status == "info_requested"

    def test_edit_submitted_claim_is_illegal(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = warranty_service.update_claim(
            claim_id, {"product_name": "Other"}, _principal(dealer_user),
        )
        assert result["code"] == E.CONFLICT_STATE
        assert _claim(claim_id).product_name == "Awning Motor 12V"

    def test_reviewer_cannot_edit(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        result = warranty_service.update_claim(claim_id, {"product_name": "X"}, _principal(admin_user))
        assert result["code"] == E.FORBIDDEN

    def test_other_dealer_gets_not_found(self, dealer_user, other_dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        result = warranty_service.update_claim(
            claim_id, {"product_name": "X"}, _principal(other_dealer_user),
        )
        assert result["code"] == E.NOT_FOUND


# ═════════════════════════════════════════════════════════════════════════════
# submit_claim / delete_claim
# ═════════════════════════════════════════════════════════════════════════════

class TestSubmitAndDelete:
    def test_submit_draft(self, dealer_user, claim_payload):
        created = _create(dealer_user, claim_payload)

        result = warranty_service.submit_claim(created["claim_id"], _principal(dealer_user))

        assert result == {
            "success": True,
            "claim_id": created["claim_id"],
            "claim_number": created["claim_number"],
        }
        claim = _claim(created["claim_id"])
        assert claim.status == "submitted"
        assert claim.submitted_at is not None
        last = _history(claim.id)[-1]
        assert (last.from_status, last.to_status) == ("draft", "submitted")
        assert last.note == "Warranty claim submitted for review"
        assert last.changed_by_id == dealer_user.id

    def test_submit_twice_is_illegal(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        warranty_service.submit_claim(claim_id, _principal(dealer_user))

        result = warranty_service.submit_claim(claim_id, _principal(dealer_user))
        assert result["code"] == E.CONFLICT_STATE
        assert len(_history(claim_id)) == 2

    def test_delete_draft_cascades(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        assert warranty_service.delete_claim(claim_id, _principal(dealer_user)) == {"success": True}
        assert _claim(claim_id) is None
        assert WarrantyClaimItem.query.count() == 0
        assert WarrantyClaimStatusHistory.query.count() == 0
        assert "warranty_claim.delete" in _audit_actions(claim_id)

    def test_deleted_number_is_not_reissued(self, dealer_user, claim_payload):
        first = _create(dealer_user, claim_payload)
        warranty_service.delete_claim(first["claim_id"], _principal(dealer_user))

        second = _create(dealer_user, claim_payload)
        assert second["claim_number"] != first["claim_number"]

    def test_delete_submitted_is_illegal(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = warranty_service.delete_claim(claim_id, _principal(dealer_user))
        assert result["code"] == E.CONFLICT_STATE
        assert _claim(claim_id) is not None


# ═════════════════════════════════════════════════════════════════════════════
# review_claim
# ═════════════════════════════════════════════════════════════════════════════

class TestReviewClaim:
    def test_approve_defaults(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]

        result = _review(claim_id, admin_user, action="approve")

        assert result == {"success": True, "claim_id": claim_id}
        claim = _claim(claim_id)
        assert claim.status == "approved"
        assert claim.total_approved == claim.total_requested == Decimal("280.00")
        assert claim.resolution_type == "credit"
        assert claim.reviewed_at is not None
        assert claim.resolved_at is not None
        assert claim.assigned_to_id == admin_user.id

        last = _history(claim_id)[-1]
        assert (last.from_status, last.to_status) == ("submitted", "approved")
        assert last.note == "Warranty claim approved"

        system_note = WarrantyClaimNote.query.filter_by(claim_id=claim_id, is_system_note=True).one()
        assert system_note.content == "Warranty claim approved"
        assert system_note.is_internal is False
        assert _audit_actions(claim_id)[-1] == "warranty_claim.approve"
        assert Notification.query.filter_by(recipient=dealer_user.id).count() == 1

    def test_reviewer_note_used_for_history_and_system_note(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="approve", note="Covered under extended plan")

        assert _history(claim_id)[-1].note == "Covered under extended plan"
        note = WarrantyClaimNote.query.filter_by(claim_id=claim_id, is_system_note=True).one()
        assert note.content == "Covered under extended plan"

    def test_approve_explicit_zero_is_kept(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="approve", total_approved=0, resolution_type="replacement")

        claim = _claim(claim_id)
        assert claim.total_approved == Decimal("0.00")
        assert claim.resolution_type == "replacement"

    def test_partial_sums_item_decisions(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True, items=TWO_ITEMS)["claim_id"]
        gear, board = _claim(claim_id).items

        result = _review(claim_id, admin_user, action="partial", item_decisions=[
            {"item_id": gear.id, "approved": True, "approved_qty": 2, "approved_amount": "91.00"},
            {"item_id": board.id, "approved": False, "denial_reason": "Water damage"},
        ])

        assert result["success"] is True
        claim = _claim(claim_id)
        assert claim.status == "partial"
        assert claim.total_approved == Decimal("91.00")
        assert claim.resolution_type == "partial_credit"
        gear, board = claim.items
        assert (gear.approved, gear.approved_qty, gear.approved_amount) == (True, 2, Decimal("91.00"))
        assert (board.approved, board.denial_reason) == (False, "Water damage")

    def test_unreferenced_items_untouched(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True, items=TWO_ITEMS)["claim_id"]
        gear, _board = _claim(claim_id).items

        _review(claim_id, admin_user, action="approve", item_decisions=[
            {"item_id": gear.id, "approved": True, "approved_amount": 50},
        ])

        claim = _claim(claim_id)
        assert claim.total_approved == Decimal("50.00")
        assert claim.items[1].approved is None
        assert claim.items[1].approved_amount is None

    def test_partial_without_amount_leaves_total_null(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="partial")

        claim = _claim(claim_id)
        assert claim.status == "partial"
        assert claim.total_approved is None

    def test_deny(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="deny", resolution_type="credit")

        claim = _claim(claim_id)
        assert claim.status == "denied"
        assert claim.total_approved is None
        assert claim.resolution_type == "denial"
        assert claim.resolved_at is not None

    def test_deny_with_explicit_zero_stores_zero(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="deny", total_approved=0)

        claim = _claim(claim_id)
        assert claim.status == "denied"
        assert claim.total_approved == Decimal("0.00")

    def test_deny_rejects_nonzero_amount(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = _review(claim_id, admin_user, action="deny", total_approved=10)

        assert result["code"] == E.VALIDATION_INVALID
        assert _claim(claim_id).status == "submitted"

    def test_request_info(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="request_info")

        claim = _claim(claim_id)
        assert claim.status == "info_requested"
        assert claim.reviewed_at is not None
        assert claim.resolved_at is None
        assert claim.total_approved is None
        assert claim.resolution_type is None
        assert _history(claim_id)[-1].note == "Additional information requested"

    def test_unknown_item_aborts_before_any_write(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        real_item = _claim(claim_id).items[0]

        result = _review(claim_id, admin_user, action="approve", item_decisions=[
            {"item_id": real_item.id, "approved": True, "approved_amount": 10},
            {"item_id": "no-such-item", "approved": True},
        ])

        assert result["code"] == E.NOT_FOUND
        claim = _claim(claim_id)
        assert claim.status == "submitted"
        assert claim.items[0].approved is None
        assert len(_history(claim_id)) == 1

    def test_resolved_claim_cannot_be_reviewed_again(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="approve")

        result = _review(claim_id, admin_user, action="deny")
        assert result["code"] == E.CONFLICT_STATE
        assert _claim(claim_id).status == "approved"

    def test_draft_cannot_be_reviewed(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        assert _review(claim_id, admin_user, action="approve")["code"] == E.CONFLICT_STATE

    def test_dealer_cannot_review(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        assert _review(claim_id, dealer_user, action="approve")["code"] == E.FORBIDDEN

    def test_unknown_action(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = _review(claim_id, admin_user, action="reopen")
        assert result["code"] == E.VALIDATION_INVALID
        assert "action" in result["details"]

    def test_review_timestamps_written_once(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="request_info")
        first_reviewed = _claim(claim_id).reviewed_at

        warranty_service.respond_to_info_request(
            claim_id, {"response": "Photos attached"}, _principal(dealer_user),
        )
        _review(claim_id, admin_user, action="approve")

        claim = _claim(claim_id)
        assert claim.reviewed_at == first_reviewed
        assert claim.resolved_at is not None


# ═════════════════════════════════════════════════════════════════════════════
# respond_to_info_request
# ═════════════════════════════════════════════════════════════════════════════

class TestRespond:
    def _info_requested(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="request_info")
        return claim_id

    def test_respond_and_resubmit(self, dealer_user, admin_user, claim_payload):
        claim_id = self._info_requested(dealer_user, admin_user, claim_payload)

        result = warranty_service.respond_to_info_request(
            claim_id, {"response": "Serial plate photo attached"}, _principal(dealer_user),
        )

        assert result["success"] is True
        assert result["claim_number"] == _claim(claim_id).claim_number
        assert _claim(claim_id).status == "submitted"
        last = _history(claim_id)[-1]
        assert (last.from_status, last.to_status) == ("info_requested", "submitted")
        assert last.note == "Information provided and resubmitted for review"
        note = WarrantyClaimNote.query.filter_by(
            claim_id=claim_id, content="Serial plate photo attached",
        ).one()
        assert note.is_system_note is False

    def test_respond_without_resubmit_keeps_status(self, dealer_user, admin_user, claim_payload):
        claim_id = self._info_requested(dealer_user, admin_user, claim_payload)
        history_before = len(_history(claim_id))

        result = warranty_service.respond_to_info_request(
            claim_id, {"response": "Will send photos tomorrow", "resubmit": False},
            _principal(dealer_user),
        )

        assert result["success"] is True
        assert _claim(claim_id).status == "info_requested"
        assert len(_history(claim_id)) == history_before

    def test_respond_requires_info_requested(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = warranty_service.respond_to_info_request(
            claim_id, {"response": "Here you go"}, _principal(dealer_user),
        )
        assert result["code"] == E.CONFLICT_STATE

    def test_empty_response_is_required(self, dealer_user, admin_user, claim_payload):
        claim_id = self._info_requested(dealer_user, admin_user, claim_payload)
        result = warranty_service.respond_to_info_request(
            claim_id, {"response": "   "}, _principal(dealer_user),
        )
        assert result["code"] == E.VALIDATION_REQUIRED


# ═════════════════════════════════════════════════════════════════════════════
# assign_claim / close_claim
# ═════════════════════════════════════════════════════════════════════════════

class TestAssignAndClose:
    def test_assign_defaults_to_actor_and_starts_review(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]

        result = warranty_service.assign_claim(claim_id, None, _principal(admin_user))

        assert result["success"] is True
        claim = _claim(claim_id)
        assert claim.assigned_to_id == admin_user.id
        assert claim.status == "under_review"
        last = _history(claim_id)[-1]
        assert (last.from_status, last.to_status) == ("submitted", "under_review")
        assert last.note == "Claim assigned for review"

    def test_reassign_under_review_keeps_status_but_records_history(
        self, dealer_user, admin_user, claim_payload,
    ):
        colleague = User(email="sam@manufacturer.test", role="super_admin")
        _db.session.add(colleague)
        _db.session.commit()
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        warranty_service.assign_claim(claim_id, None, _principal(admin_user))

        result = warranty_service.assign_claim(claim_id, colleague.id, _principal(admin_user))

        assert result["success"] is True
        claim = _claim(claim_id)
        assert claim.status == "under_review"
        assert claim.assigned_to_id == colleague.id
        last = _history(claim_id)[-1]
        assert (last.from_status, last.to_status) == ("under_review", "under_review")
        assert Notification.query.filter_by(recipient=colleague.id).count() == 1

    @pytest.mark.parametrize("role, active", [("dealer_user", True), ("admin", False)])
    def test_assignee_must_be_active_reviewer(self, dealer_user, admin_user, claim_payload, role, active):
        target = User(email="x@test.test", role=role, is_active=active)
        _db.session.add(target)
        _db.session.commit()
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]

        result = warranty_service.assign_claim(claim_id, target.id, _principal(admin_user))

        assert result["code"] == E.VALIDATION_INVALID
        assert _claim(claim_id).status == "submitted"

    def test_dealer_cannot_assign(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = warranty_service.assign_claim(claim_id, None, _principal(dealer_user))
        assert result["code"] == E.FORBIDDEN

    def test_close_resolved_claim(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="deny")

        result = warranty_service.close_claim(claim_id, {}, _principal(admin_user))

        assert result["success"] is True
        assert _claim(claim_id).status == "closed"
        last = _history(claim_id)[-1]
        assert (last.from_status, last.to_status) == ("denied", "closed")
        assert last.note == "Warranty claim closed"

    def test_close_unresolved_is_illegal(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        result = warranty_service.close_claim(claim_id, {}, _principal(admin_user))
        assert result["code"] == E.CONFLICT_STATE

    def test_closed_claim_accepts_no_actions(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(claim_id, admin_user, action="approve")
        warranty_service.close_claim(claim_id, {"note": "Credit issued"}, _principal(admin_user))

        assert _review(claim_id, admin_user, action="approve")["code"] == E.CONFLICT_STATE
        assert warranty_service.close_claim(claim_id, {}, _principal(admin_user))["code"] == E.CONFLICT_STATE
        detail = warranty_service.get_claim_by_id(claim_id, _principal(admin_user))
        assert detail["available_actions"] == []


# ═════════════════════════════════════════════════════════════════════════════
# Notes, history, detail
# ═════════════════════════════════════════════════════════════════════════════

class TestNotesHistoryDetail:
    def test_dealer_note(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        result = warranty_service.add_note(claim_id, {"content": "Customer is waiting"}, _principal(dealer_user))

        assert result["success"] is True
        note = _db.session.get(WarrantyClaimNote, result["note_id"])
        assert note.content == "Customer is waiting"
        assert note.is_internal is False
        assert AuditLog.query.filter_by(
            entity_id=note.id, action="warranty_claim_note.create",
        ).count() == 1

    def test_dealer_cannot_write_internal_note(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        result = warranty_service.add_note(
            claim_id, {"content": "secret", "is_internal": True}, _principal(dealer_user),
        )
        assert result["code"] == E.FORBIDDEN
        assert WarrantyClaimNote.query.count() == 0

    def test_empty_note_rejected(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        result = warranty_service.add_note(claim_id, {"content": ""}, _principal(dealer_user))
        assert result["code"] == E.VALIDATION_REQUIRED

    def test_history_newest_first(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]
        warranty_service.submit_claim(claim_id, _principal(dealer_user))
        _review(claim_id, admin_user, action="approve")

        history = warranty_service.get_claim_history(claim_id, _principal(dealer_user))
        assert [h["to_status"] for h in history] == ["approved", "submitted", "draft"]
        assert history[0]["changed_by"]["id"] == admin_user.id

    def test_detail_for_owner_on_draft(self, dealer_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        detail = warranty_service.get_claim_by_id(claim_id, _principal(dealer_user))

        assert detail["dealer"]["code"] == "D-100"
        assert detail["submitted_by"]["id"] == dealer_user.id
        assert detail["assigned_to"] is None
        assert len(detail["items"]) == 1
        assert len(detail["status_history"]) == 1
        assert detail["can_edit"] and detail["can_submit"] and detail["can_delete"]
        assert not (detail["can_review"] or detail["can_respond"] or detail["can_close"])
        assert detail["is_admin"] is False

    def test_detail_for_reviewer(self, dealer_user, admin_user, claim_payload):
        claim_id = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]

        detail = warranty_service.get_claim_by_id(claim_id, _principal(admin_user))

        assert detail["can_review"] is True
        assert detail["can_edit"] is False
        assert detail["is_admin"] is True

    def test_detail_missing_claim(self, admin_user):
        assert warranty_service.get_claim_by_id("nope", _principal(admin_user)) is None


# ═════════════════════════════════════════════════════════════════════════════
# list_claims / get_stats
# ═════════════════════════════════════════════════════════════════════════════

class TestListAndStats:
    def test_pagination(self, dealer_user, claim_payload):
        for _ in range(3):
            _create(dealer_user, claim_payload)

        result = warranty_service.list_claims({"page": 2, "page_size": 2}, _principal(dealer_user))

        assert result["success"] is True
        assert len(result["claims"]) == 1
        assert result["pagination"] == {"page": 2, "page_size": 2, "total": 3, "total_pages": 2}

    def test_search_and_status_filter(self, dealer_user, claim_payload):
        _create(dealer_user, claim_payload, serial_number="ZX-1", customer_name="Pat Lee")
        _create(dealer_user, claim_payload, serial_number="QQ-2", submit_now=True)

        by_serial = warranty_service.list_claims({"search": "zx-"}, _principal(dealer_user))
        by_customer = warranty_service.list_claims({"search": "pat"}, _principal(dealer_user))
        by_status = warranty_service.list_claims({"status": "submitted"}, _principal(dealer_user))
        all_status = warranty_service.list_claims({"status": "all"}, _principal(dealer_user))

        assert by_serial["pagination"]["total"] == 1
        assert by_customer["pagination"]["total"] == 1
        assert [c["status"] for c in by_status["claims"]] == ["submitted"]
        assert all_status["pagination"]["total"] == 2

    def test_sort_by_claim_number_ascending(self, dealer_user, claim_payload):
        numbers = [_create(dealer_user, claim_payload)["claim_number"] for _ in range(3)]
        result = warranty_service.list_claims(
            {"sort_by": "claim_number", "sort_order": "asc"}, _principal(dealer_user),
        )
        assert [c["claim_number"] for c in result["claims"]] == numbers

    def test_dealer_filter_ignored_for_dealers(self, dealer_user, other_dealer, claim_payload):
        _create(dealer_user, claim_payload)
        result = warranty_service.list_claims({"dealer_id": other_dealer.id}, _principal(dealer_user))
        assert result["pagination"]["total"] == 1

    def test_admin_dealer_filter(self, dealer_user, other_dealer_user, admin_user, claim_payload):
        _create(dealer_user, claim_payload)
        _create(other_dealer_user, claim_payload)
        result = warranty_service.list_claims(
            {"dealer_id": other_dealer_user.dealer_id}, _principal(admin_user),
        )
        assert [c["dealer"]["code"] for c in result["claims"]] == ["D-200"]

    @pytest.mark.parametrize("filters, field", [
        ({"page_size": 500}, "page_size"),
        ({"page": 0}, "page"),
        ({"sort_by": "vin"}, "sort_by"),
        ({"date_from": "yesterday"}, "date_from"),
    ])
    def test_invalid_filters(self, dealer_user, filters, field):
        result = warranty_service.list_claims(filters, _principal(dealer_user))
        assert result["success"] is False
        assert field in result["details"]

    def test_stats(self, dealer_user, other_dealer_user, admin_user, claim_payload):
        _create(dealer_user, claim_payload)  # draft
        approved = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        denied = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        info = _create(dealer_user, claim_payload, submit_now=True)["claim_id"]
        _review(approved, admin_user, action="approve")
        _review(denied, admin_user, action="deny")
        _review(info, admin_user, action="request_info")

        stats = warranty_service.get_stats(_principal(admin_user))

        assert stats["total"] == 4
        assert stats["pending"] == 1
        assert stats["in_review"] == 1
        assert stats["approved"] == 1
        assert stats["denied"] == 1
        assert stats["total_requested"] == 840.0
        assert stats["total_approved"] == 280.0

        other = warranty_service.get_stats(_principal(other_dealer_user))
        assert other["total"] == 0
        assert other["total_requested"] == 0.0


# ═════════════════════════════════════════════════════════════════════════════
# Transactions & notifications
# ═════════════════════════════════════════════════════════════════════════════

class TestAtomicity:
    def test_audit_failure_rolls_back_transition(self, dealer_user, claim_payload, monkeypatch):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        def _broken_audit(**kwargs):
            raise SQLAlchemyError("audit table unavailable")

        monkeypatch.setattr(warranty_service, "write_audit", _broken_audit)
        result = warranty_service.submit_claim(claim_id, _principal(dealer_user))

        assert result == {
            "success": False,
            "error": "Failed to submit warranty claim",
            "code": E.DATABASE,
        }
        assert _claim(claim_id).status == "draft"
        assert len(_history(claim_id)) == 1

    def test_notification_failure_does_not_fail_operation(self, dealer_user, claim_payload, monkeypatch):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        def _broken_notify(claim):
            raise SQLAlchemyError("notifications table locked")

        monkeypatch.setattr(NotificationService, "notify_claim_submitted", staticmethod(_broken_notify))
        result = warranty_service.submit_claim(claim_id, _principal(dealer_user))

        assert result["success"] is True
        assert _claim(claim_id).status == "submitted"

    def test_unexpected_notification_error_is_logged_not_raised(
        self, dealer_user, claim_payload, monkeypatch, caplog,
    ):
        claim_id = _create(dealer_user, claim_payload)["claim_id"]

        def _broken_notify(claim):
            raise RuntimeError("template missing")

        monkeypatch.setattr(NotificationService, "notify_claim_submitted", staticmethod(_broken_notify))
        result = warranty_service.submit_claim(claim_id, _principal(dealer_user))

        assert result["success"] is True
        assert _claim(claim_id).status == "submitted"
        assert Notification.query.count() == 0
        assert any(r.exc_info and r.exc_info[0] is RuntimeError for r in caplog.records)
