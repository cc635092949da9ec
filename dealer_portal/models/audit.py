"""
Dealer Portal
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for warranty mutations.
"""

import json
from datetime import UTC, datetime

from dealer_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"warranty_claim", "warranty_claim_note"}

AUDIT_ACTIONS = {
    "warranty_claim.create",
    "warranty_claim.edit",
    "warranty_claim.submit",
    "warranty_claim.assign",
    "warranty_claim.approve",
    "warranty_claim.deny",
    "warranty_claim.partial",
    "warranty_claim.request_info",
    "warranty_claim.respond",
    "warranty_claim.close",
    "warranty_claim.delete",
    "warranty_claim_note.create",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every warranty mutation.

    One row per action.  ``diff_json`` carries an old→new snapshot of the
    fields the action touched.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    dealer_id = db.Column(
        db.String(36),
        db.ForeignKey("dealers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="warranty_claim | warranty_claim_note",
    )
    entity_id = db.Column(
        db.String(36), nullable=False,
        comment="PK of the referenced entity",
    )

    # What happened
    action = db.Column(
        db.String(60), nullable=False,
        comment="warranty_claim.approve | warranty_claim_note.create | …",
    )
    actor = db.Column(
        db.String(150), nullable=False, default="system",
        comment="Role of the acting principal or 'system'",
    )
    actor_user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="FK to users table (nullable for system entries)",
    )

    # Change payload
    diff_json = db.Column(
        db.Text, default="{}",
        comment="JSON: {field: {old, new}}",
    )

    # Timestamp (immutable)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "dealer_id": self.dealer_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor: str = "system",
    actor_user_id: str | None = None,
    dealer_id: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control: the row commits or rolls back together with the
    change it describes.

    Returns the (flushed) AuditLog instance.
    """
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")

    log = AuditLog(
        dealer_id=dealer_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor,
        actor_user_id=actor_user_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
