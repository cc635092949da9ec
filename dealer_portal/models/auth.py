"""
Identity Models: dealers and users.

The portal's identity provider owns these tables; the warranty engine only
reads them to resolve ownership, display names and reviewer eligibility.
"""

import uuid
from datetime import datetime, timezone

from dealer_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ROLES = frozenset({"super_admin", "admin", "dealer_admin", "dealer_user"})

# Manufacturer-side roles with network-wide visibility and review authority
ADMIN_ROLES = frozenset({"super_admin", "admin"})


def _uuid():
    return str(uuid.uuid4())


# ═══════════════════════════════════════════════════════════════
# 1. DEALERS
# ═══════════════════════════════════════════════════════════════
class Dealer(db.Model):
    __tablename__ = "dealers"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    users = db.relationship("User", back_populates="dealer", lazy="dynamic")

    def to_brief(self):
        return {"id": self.id, "name": self.name, "code": self.code}

    def __repr__(self):
        return f"<Dealer {self.code}>"


# ═══════════════════════════════════════════════════════════════
# 2. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(200), unique=True, nullable=False)
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    role = db.Column(
        db.String(30), nullable=False, default="dealer_user",
        comment="super_admin | admin | dealer_admin | dealer_user",
    )
    dealer_id = db.Column(
        db.String(36),
        db.ForeignKey("dealers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="NULL for manufacturer staff",
    )
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    dealer = db.relationship("Dealer", back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def to_brief(self, *, with_email=True, with_role=False):
        data = {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
        }
        if with_email:
            data["email"] = self.email
        if with_role:
            data["role"] = self.role
        return data

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
