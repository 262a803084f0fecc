"""create applications table

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


application_status = postgresql.ENUM(
    "pending",
    "success",
    "failure",
    name="application_status",
    create_type=False,
)


def upgrade() -> None:
    application_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "applications",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("transaction_id", sa.String(length=64), nullable=False),
        sa.Column("status", application_status, nullable=False),
        sa.Column("amount", sa.Numeric(precision=18, scale=2), nullable=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("dob", sa.String(length=32), nullable=True),
        sa.Column("heard_from", sa.String(length=255), nullable=True),
        sa.Column("preferred_contact", sa.JSON(), nullable=True),
        sa.Column("course", sa.String(length=128), nullable=True),
        sa.Column("course_data", sa.JSON(), nullable=True),
        sa.Column("resume_urls", sa.JSON(), nullable=True),
        sa.Column("payment_mode", sa.String(length=64), nullable=True),
        sa.Column("gateway_transaction_reference", sa.String(length=128), nullable=True),
        sa.Column("raw_callback_payload", sa.JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(length=16), nullable=False),
        sa.Column("callback_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status_conflict_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_conflict_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_applications_transaction_id", "applications", ["transaction_id"], unique=True)
    op.create_index("ix_applications_status", "applications", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_index("ix_applications_transaction_id", table_name="applications")
    op.drop_table("applications")
    application_status.drop(op.get_bind(), checkfirst=True)
