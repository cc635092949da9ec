"""warranty_claims

Create dealers / users (identity provider mirror), warranty claim tables,
the per-year claim number counter, audit_logs and notifications.

Revision ID: 5f2a9c1d7e30
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f2a9c1d7e30"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "dealers" not in existing_tables:
        op.create_table(
            "dealers",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("code", sa.String(length=50), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("code"),
        )

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("first_name", sa.String(length=100), nullable=False),
            sa.Column("last_name", sa.String(length=100), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False),
            sa.Column("dealer_id", sa.String(length=36), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["dealer_id"], ["dealers.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_users_dealer_id", "users", ["dealer_id"])

    if "warranty_claims" not in existing_tables:
        op.create_table(
            "warranty_claims",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("claim_number", sa.String(length=20), nullable=False),
            sa.Column("dealer_id", sa.String(length=36), nullable=False),
            sa.Column("submitted_by_id", sa.String(length=36), nullable=False),
            sa.Column("assigned_to_id", sa.String(length=36), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("claim_type", sa.String(length=30), nullable=False),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="normal"),
            sa.Column("product_id", sa.String(length=36), nullable=True),
            sa.Column("product_name", sa.String(length=200), nullable=False),
            sa.Column("serial_number", sa.String(length=100), nullable=True),
            sa.Column("model_number", sa.String(length=100), nullable=True),
            sa.Column("purchase_date", sa.Date(), nullable=True),
            sa.Column("install_date", sa.Date(), nullable=True),
            sa.Column("rv_unit_id", sa.String(length=36), nullable=True),
            sa.Column("vin", sa.String(length=17), nullable=True),
            sa.Column("customer_name", sa.String(length=200), nullable=True),
            sa.Column("customer_phone", sa.String(length=50), nullable=True),
            sa.Column("customer_email", sa.String(length=200), nullable=True),
            sa.Column("customer_address", sa.String(length=500), nullable=True),
            sa.Column("issue_description", sa.Text(), nullable=False),
            sa.Column("failure_date", sa.Date(), nullable=True),
            sa.Column("is_under_warranty", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("labor_hours", sa.Numeric(8, 2), nullable=True),
            sa.Column("labor_rate", sa.Numeric(12, 2), nullable=True),
            sa.Column("labor_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("parts_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("shipping_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("total_requested", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("total_approved", sa.Numeric(12, 2), nullable=True),
            sa.Column("resolution_type", sa.String(length=20), nullable=True),
            sa.Column("resolution_notes", sa.Text(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["dealer_id"], ["dealers.id"]),
            sa.ForeignKeyConstraint(["submitted_by_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["assigned_to_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("claim_number"),
        )
        op.create_index("ix_warranty_claims_dealer_id", "warranty_claims", ["dealer_id"])
        op.create_index("ix_warranty_claims_assigned_to_id", "warranty_claims", ["assigned_to_id"])
        op.create_index("ix_warranty_claims_status", "warranty_claims", ["status"])
        op.create_index("ix_warranty_claims_dealer_status", "warranty_claims", ["dealer_id", "status"])
        op.create_index("ix_warranty_claims_created", "warranty_claims", ["created_at"])

    if "warranty_claim_items" not in existing_tables:
        op.create_table(
            "warranty_claim_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("claim_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("part_number", sa.String(length=100), nullable=True),
            sa.Column("part_name", sa.String(length=200), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("unit_cost", sa.Numeric(12, 4), nullable=False, server_default="0"),
            sa.Column("total_cost", sa.Numeric(12, 2), nullable=False, server_default="0"),
            sa.Column("issue_type", sa.String(length=20), nullable=False),
            sa.Column("issue_description", sa.Text(), nullable=True),
            sa.Column("approved", sa.Boolean(), nullable=True),
            sa.Column("approved_qty", sa.Integer(), nullable=True),
            sa.Column("approved_amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("denial_reason", sa.String(length=500), nullable=True),
            sa.ForeignKeyConstraint(["claim_id"], ["warranty_claims.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_warranty_claim_items_claim_id", "warranty_claim_items", ["claim_id"])

    if "warranty_claim_status_history" not in existing_tables:
        op.create_table(
            "warranty_claim_status_history",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("claim_id", sa.String(length=36), nullable=False),
            sa.Column("from_status", sa.String(length=20), nullable=True),
            sa.Column("to_status", sa.String(length=20), nullable=False),
            sa.Column("changed_by_id", sa.String(length=36), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["claim_id"], ["warranty_claims.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["changed_by_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_warranty_claim_status_history_claim_id",
            "warranty_claim_status_history", ["claim_id"],
        )

    if "warranty_claim_notes" not in existing_tables:
        op.create_table(
            "warranty_claim_notes",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("claim_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_system_note", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["claim_id"], ["warranty_claims.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_warranty_claim_notes_claim_id", "warranty_claim_notes", ["claim_id"])

    if "warranty_claim_sequences" not in existing_tables:
        op.create_table(
            "warranty_claim_sequences",
            sa.Column("year", sa.Integer(), autoincrement=False, nullable=False),
            sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
            sa.PrimaryKeyConstraint("year"),
        )

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("dealer_id", sa.String(length=36), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor", sa.String(length=150), nullable=False, server_default="system"),
            sa.Column("actor_user_id", sa.String(length=36), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["dealer_id"], ["dealers.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_dealer_id", "audit_logs", ["dealer_id"])
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient", sa.String(length=150), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_recipient", "notifications", ["recipient"])


def downgrade():
    existing_tables = set(sa_inspect(op.get_bind()).get_table_names())

    for table in (
        "notifications",
        "audit_logs",
        "warranty_claim_sequences",
        "warranty_claim_notes",
        "warranty_claim_status_history",
        "warranty_claim_items",
        "warranty_claims",
        "users",
        "dealers",
    ):
        if table in existing_tables:
            op.drop_table(table)
