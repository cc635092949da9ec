"""
Dealer Portal
Warranty domain model.

Models:
    - WarrantyClaim: aggregate root, one reimbursement request per dealer filing
    - WarrantyClaimItem: one replaced / repaired part on a claim
    - WarrantyClaimStatusHistory: append-only log, one row per status transition
    - WarrantyClaimNote: append-only discussion thread (internal / system flags)
    - WarrantyClaimSequence: per-year counter backing WC-<year>-<seq> numbers

Lifecycle (CLAIM_TRANSITIONS):
    draft → submitted → under_review → {approved, partial, denied, info_requested}
    info_requested → submitted (dealer response with resubmit)
    {approved, partial, denied} → closed
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from dealer_portal.models import db


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _money(value):
    """Decimal column value → float for JSON payloads."""
    if value is None:
        return None
    return float(value)


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Constants
# ═════════════════════════════════════════════════════════════════════════════

class ClaimStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    INFO_REQUESTED = "info_requested"
    APPROVED = "approved"
    PARTIAL = "partial"
    DENIED = "denied"
    CLOSED = "closed"


class ClaimAction(str, Enum):
    EDIT = "edit"
    SUBMIT = "submit"
    ASSIGN = "assign"
    APPROVE = "approve"
    DENY = "deny"
    PARTIAL = "partial"
    REQUEST_INFO = "request_info"
    RESPOND = "respond"
    CLOSE = "close"
    DELETE = "delete"


class ActorClass(str, Enum):
    """Who may trigger an action."""
    DEALER_OWNER = "dealer_owner"
    MANUFACTURER = "manufacturer"


CLAIM_TYPES = frozenset({
    "product_defect", "shipping_damage", "missing_parts", "installation_issue", "other",
})
PRIORITIES = frozenset({"low", "normal", "high", "urgent"})
RESOLUTION_TYPES = frozenset({"replacement", "repair", "credit", "partial_credit", "denial"})
ITEM_ISSUE_TYPES = frozenset({"defective", "damaged", "missing", "worn", "other"})

EDITABLE_STATUSES = frozenset({ClaimStatus.DRAFT, ClaimStatus.INFO_REQUESTED})
RESOLVED_STATUSES = frozenset({ClaimStatus.APPROVED, ClaimStatus.PARTIAL, ClaimStatus.DENIED})
TERMINAL_STATUSES = frozenset({ClaimStatus.CLOSED})

REVIEW_ACTIONS = frozenset({
    ClaimAction.APPROVE, ClaimAction.DENY, ClaimAction.PARTIAL, ClaimAction.REQUEST_INFO,
})
RESOLVING_ACTIONS = frozenset({ClaimAction.APPROVE, ClaimAction.DENY, ClaimAction.PARTIAL})

STATUS_LABELS = {
    ClaimStatus.DRAFT: "Draft",
    ClaimStatus.SUBMITTED: "Submitted",
    ClaimStatus.UNDER_REVIEW: "Under Review",
    ClaimStatus.INFO_REQUESTED: "Info Requested",
    ClaimStatus.APPROVED: "Approved",
    ClaimStatus.PARTIAL: "Partially Approved",
    ClaimStatus.DENIED: "Denied",
    ClaimStatus.CLOSED: "Closed",
}


@dataclass(frozen=True)
class TransitionRule:
    """One row of the claim transition table.

    ``target`` of None keeps the current status (edit, delete, assign on a
    claim already in review).  ``target_by_source`` overrides the target for
    specific source statuses.
    """
    sources: frozenset
    actor: ActorClass
    target: ClaimStatus | None = None
    target_by_source: dict = field(default_factory=dict)

    def resolve(self, current: ClaimStatus) -> ClaimStatus:
        if current in self.target_by_source:
            return self.target_by_source[current]
        return self.target or current


_IN_REVIEW = frozenset({ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW})

CLAIM_TRANSITIONS = {
    ClaimAction.EDIT: TransitionRule(EDITABLE_STATUSES, ActorClass.DEALER_OWNER),
    ClaimAction.SUBMIT: TransitionRule(
        frozenset({ClaimStatus.DRAFT}), ActorClass.DEALER_OWNER, ClaimStatus.SUBMITTED,
    ),
    ClaimAction.ASSIGN: TransitionRule(
        frozenset({ClaimStatus.SUBMITTED, ClaimStatus.UNDER_REVIEW, ClaimStatus.INFO_REQUESTED}),
        ActorClass.MANUFACTURER,
        target_by_source={ClaimStatus.SUBMITTED: ClaimStatus.UNDER_REVIEW},
    ),
    ClaimAction.APPROVE: TransitionRule(_IN_REVIEW, ActorClass.MANUFACTURER, ClaimStatus.APPROVED),
    ClaimAction.DENY: TransitionRule(_IN_REVIEW, ActorClass.MANUFACTURER, ClaimStatus.DENIED),
    ClaimAction.PARTIAL: TransitionRule(_IN_REVIEW, ActorClass.MANUFACTURER, ClaimStatus.PARTIAL),
    ClaimAction.REQUEST_INFO: TransitionRule(
        _IN_REVIEW, ActorClass.MANUFACTURER, ClaimStatus.INFO_REQUESTED,
    ),
    ClaimAction.RESPOND: TransitionRule(
        frozenset({ClaimStatus.INFO_REQUESTED}), ActorClass.DEALER_OWNER, ClaimStatus.SUBMITTED,
    ),
    ClaimAction.CLOSE: TransitionRule(RESOLVED_STATUSES, ActorClass.MANUFACTURER, ClaimStatus.CLOSED),
    ClaimAction.DELETE: TransitionRule(frozenset({ClaimStatus.DRAFT}), ActorClass.DEALER_OWNER),
}

# Default history / system-note text, keyed by action
DEFAULT_NOTES = {
    ClaimAction.SUBMIT: "Warranty claim submitted for review",
    ClaimAction.ASSIGN: "Claim assigned for review",
    ClaimAction.APPROVE: "Warranty claim approved",
    ClaimAction.DENY: "Warranty claim denied",
    ClaimAction.PARTIAL: "Warranty claim partially approved",
    ClaimAction.REQUEST_INFO: "Additional information requested",
    ClaimAction.RESPOND: "Information provided and resubmitted for review",
    ClaimAction.CLOSE: "Warranty claim closed",
}
CREATED_DRAFT_NOTE = "Warranty claim created as draft"
CREATED_SUBMITTED_NOTE = "Warranty claim submitted"

# Default resolution type per review action
REVIEW_RESOLUTIONS = {
    ClaimAction.APPROVE: "credit",
    ClaimAction.PARTIAL: "partial_credit",
    ClaimAction.DENY: "denial",
    ClaimAction.REQUEST_INFO: None,
}


# ═════════════════════════════════════════════════════════════════════════════
# Models
# ═════════════════════════════════════════════════════════════════════════════

class WarrantyClaim(db.Model):
    """
    Warranty reimbursement request filed by a dealer.

    Amount invariant: total_requested == labor_amount + parts_amount +
    shipping_amount, each component rounded to cents before summation.
    submitted_at / reviewed_at / resolved_at are written once and never reset.
    """

    __tablename__ = "warranty_claims"
    __table_args__ = (
        db.Index("ix_warranty_claims_dealer_status", "dealer_id", "status"),
        db.Index("ix_warranty_claims_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    claim_number = db.Column(
        db.String(20), unique=True, nullable=False,
        comment="WC-<year>-<5-digit sequence>",
    )

    # Ownership
    dealer_id = db.Column(
        db.String(36), db.ForeignKey("dealers.id"), nullable=False, index=True,
    )
    submitted_by_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    status = db.Column(db.String(20), nullable=False, default=ClaimStatus.DRAFT.value, index=True)
    claim_type = db.Column(db.String(30), nullable=False)
    priority = db.Column(db.String(10), nullable=False, default="normal")

    # Subject
    product_id = db.Column(db.String(36), nullable=True)
    product_name = db.Column(db.String(200), nullable=False)
    serial_number = db.Column(db.String(100), nullable=True)
    model_number = db.Column(db.String(100), nullable=True)
    purchase_date = db.Column(db.Date, nullable=True)
    install_date = db.Column(db.Date, nullable=True)
    rv_unit_id = db.Column(db.String(36), nullable=True)
    vin = db.Column(db.String(17), nullable=True)

    # Customer context (informational only)
    customer_name = db.Column(db.String(200), nullable=True)
    customer_phone = db.Column(db.String(50), nullable=True)
    customer_email = db.Column(db.String(200), nullable=True)
    customer_address = db.Column(db.String(500), nullable=True)

    # Narrative
    issue_description = db.Column(db.Text, nullable=False)
    failure_date = db.Column(db.Date, nullable=True)
    is_under_warranty = db.Column(db.Boolean, nullable=False, default=True)

    # Financials
    labor_hours = db.Column(db.Numeric(8, 2), nullable=True)
    labor_rate = db.Column(db.Numeric(12, 2), nullable=True)
    labor_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    parts_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    shipping_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_requested = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_approved = db.Column(db.Numeric(12, 2), nullable=True)

    # Resolution
    resolution_type = db.Column(
        db.String(20), nullable=True,
        comment="replacement | repair | credit | partial_credit | denial",
    )
    resolution_notes = db.Column(db.Text, nullable=True)

    # Lifecycle timestamps
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationships
    dealer = db.relationship("Dealer")
    submitted_by = db.relationship("User", foreign_keys=[submitted_by_id])
    assigned_to = db.relationship("User", foreign_keys=[assigned_to_id])
    items = db.relationship(
        "WarrantyClaimItem", back_populates="claim",
        cascade="all, delete-orphan", order_by="WarrantyClaimItem.position",
    )
    notes = db.relationship(
        "WarrantyClaimNote", back_populates="claim",
        cascade="all, delete-orphan", order_by="WarrantyClaimNote.created_at.desc()",
    )
    status_history = db.relationship(
        "WarrantyClaimStatusHistory", back_populates="claim",
        cascade="all, delete-orphan", order_by="WarrantyClaimStatusHistory.created_at.desc()",
    )

    @property
    def status_enum(self) -> ClaimStatus:
        return ClaimStatus(self.status)

    def to_summary(self) -> dict:
        """List-view projection."""
        return {
            "id": self.id,
            "claim_number": self.claim_number,
            "status": self.status,
            "status_label": STATUS_LABELS[self.status_enum],
            "claim_type": self.claim_type,
            "product_name": self.product_name,
            "total_requested": _money(self.total_requested),
            "total_approved": _money(self.total_approved),
            "priority": self.priority,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "dealer": self.dealer.to_brief() if self.dealer else None,
            "submitted_by": (
                self.submitted_by.to_brief(with_email=False) if self.submitted_by else None
            ),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "claim_number": self.claim_number,
            "dealer_id": self.dealer_id,
            "submitted_by_id": self.submitted_by_id,
            "assigned_to_id": self.assigned_to_id,
            "status": self.status,
            "status_label": STATUS_LABELS[self.status_enum],
            "claim_type": self.claim_type,
            "priority": self.priority,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "serial_number": self.serial_number,
            "model_number": self.model_number,
            "purchase_date": _iso(self.purchase_date),
            "install_date": _iso(self.install_date),
            "rv_unit_id": self.rv_unit_id,
            "vin": self.vin,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "issue_description": self.issue_description,
            "failure_date": _iso(self.failure_date),
            "is_under_warranty": self.is_under_warranty,
            "labor_hours": _money(self.labor_hours),
            "labor_rate": _money(self.labor_rate),
            "labor_amount": _money(self.labor_amount),
            "parts_amount": _money(self.parts_amount),
            "shipping_amount": _money(self.shipping_amount),
            "total_requested": _money(self.total_requested),
            "total_approved": _money(self.total_approved),
            "resolution_type": self.resolution_type,
            "resolution_notes": self.resolution_notes,
            "submitted_at": _iso(self.submitted_at),
            "reviewed_at": _iso(self.reviewed_at),
            "resolved_at": _iso(self.resolved_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<WarrantyClaim {self.claim_number} ({self.status})>"


class WarrantyClaimItem(db.Model):
    """One part line on a claim.  Review fields are written only by a review action."""

    __tablename__ = "warranty_claim_items"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    claim_id = db.Column(
        db.String(36), db.ForeignKey("warranty_claims.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    part_number = db.Column(db.String(100), nullable=True)
    part_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False, default=Decimal("0"))
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    issue_type = db.Column(db.String(20), nullable=False)
    issue_description = db.Column(db.Text, nullable=True)

    # Review decision (tri-state: None = undecided)
    approved = db.Column(db.Boolean, nullable=True)
    approved_qty = db.Column(db.Integer, nullable=True)
    approved_amount = db.Column(db.Numeric(12, 2), nullable=True)
    denial_reason = db.Column(db.String(500), nullable=True)

    claim = db.relationship("WarrantyClaim", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "part_number": self.part_number,
            "part_name": self.part_name,
            "quantity": self.quantity,
            "unit_cost": _money(self.unit_cost),
            "total_cost": _money(self.total_cost),
            "issue_type": self.issue_type,
            "issue_description": self.issue_description,
            "approved": self.approved,
            "approved_qty": self.approved_qty,
            "approved_amount": _money(self.approved_amount),
            "denial_reason": self.denial_reason,
        }

    def __repr__(self):
        return f"<WarrantyClaimItem {self.part_name} x{self.quantity}>"


class WarrantyClaimStatusHistory(db.Model):
    """Append-only: one row per status transition.  from_status is NULL only on creation."""

    __tablename__ = "warranty_claim_status_history"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    claim_id = db.Column(
        db.String(36), db.ForeignKey("warranty_claims.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=False)
    changed_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    note = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    claim = db.relationship("WarrantyClaim", back_populates="status_history")
    changed_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "changed_by_id": self.changed_by_id,
            "changed_by": self.changed_by.to_brief(with_email=False) if self.changed_by else None,
            "note": self.note,
            "created_at": _iso(self.created_at),
        }


class WarrantyClaimNote(db.Model):
    """Discussion entry.  Internal notes are never returned to dealer-side actors."""

    __tablename__ = "warranty_claim_notes"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    claim_id = db.Column(
        db.String(36), db.ForeignKey("warranty_claims.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    is_system_note = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    claim = db.relationship("WarrantyClaim", back_populates="notes")
    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "content": self.content,
            "is_internal": self.is_internal,
            "is_system_note": self.is_system_note,
            "created_at": _iso(self.created_at),
            "user": self.user.to_brief(with_email=False, with_role=True) if self.user else None,
        }


class WarrantyClaimSequence(db.Model):
    """Per-year claim number counter.  last_value only ever increases."""

    __tablename__ = "warranty_claim_sequences"

    year = db.Column(db.Integer, primary_key=True, autoincrement=False)
    last_value = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<WarrantyClaimSequence {self.year}={self.last_value}>"
