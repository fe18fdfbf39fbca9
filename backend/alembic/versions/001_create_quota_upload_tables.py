"""Create quota, upload and analytics tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates user_credits, ip_usage, uploaded_files and analytics_events.
How:   PostgreSQL types: UUID keys filled by gen_random_uuid(), TIMESTAMP
       WITH TIME ZONE everywhere, JSONB for event metadata.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_credits",
        sa.Column("user_id", sa.String(64), nullable=False, comment="Subject id from the auth provider"),
        sa.Column(
            "credits_remaining",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("3"),
            comment="Processing requests left in the current window",
        ),
        sa.Column(
            "reset_at",
            sa.TIMESTAMP(timezone=True),
            nullable=True,
            comment="When the balance is restored (UTC)",
        ),
        sa.Column("last_used_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint("credits_remaining >= 0", name="ck_user_credits_non_negative"),
    )

    op.create_table(
        "ip_usage",
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("used_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("ip_address"),
    )

    op.create_table(
        "uploaded_files",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False, comment="Original client-side file name"),
        sa.Column("file_path", sa.String(512), nullable=False, comment="Object key inside the upload bucket"),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Cleanup scans by created_at < cutoff
    op.create_index("idx_uploaded_files_created_at", "uploaded_files", ["created_at"])

    op.create_table(
        "analytics_events",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_analytics_events_type_created",
        "analytics_events",
        ["event_type", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_analytics_events_type_created", table_name="analytics_events")
    op.drop_table("analytics_events")
    op.drop_index("idx_uploaded_files_created_at", table_name="uploaded_files")
    op.drop_table("uploaded_files")
    op.drop_table("ip_usage")
    op.drop_table("user_credits")
