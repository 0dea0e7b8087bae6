"""Initial schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261018_01_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "token_buckets",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("rate", sa.Float(), nullable=False),
        sa.Column("limit", sa.Integer(), nullable=True),
        sa.Column("initial", sa.Integer(), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("next_feed", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("count >= 0", name="ck_token_buckets_count_non_negative"),
        sa.CheckConstraint("rate > 0", name="ck_token_buckets_rate_positive"),
    )

    op.create_table(
        "usage_counts",
        sa.Column("second", sa.BigInteger(), primary_key=True),
        sa.Column("instance_id", sa.String(length=255), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "records",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column(
            "payload",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
        ),
        sa.Column("last_sync", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("next_update", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("idx_records_next_update", "records", ["next_update"])
    op.create_index("idx_records_last_sync", "records", ["last_sync"])


def downgrade() -> None:
    op.drop_index("idx_records_last_sync", table_name="records")
    op.drop_index("idx_records_next_update", table_name="records")
    op.drop_table("records")
    op.drop_table("usage_counts")
    op.drop_table("token_buckets")
