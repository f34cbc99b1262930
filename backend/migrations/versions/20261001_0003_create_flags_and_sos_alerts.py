from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261001_0003"
down_revision = "20261001_0002"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "flags",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("reporter_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_type", sa.String(length=16), nullable=False),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("reporter_id", "target_type", "target_id", name="uq_flag_once_per_reporter"),
        sa.CheckConstraint("target_type IN ('moment','message')", name="ck_flags_target_type"),
    )
    op.create_index("ix_flags_reporter_id", "flags", ["reporter_id"])
    op.create_index("ix_flags_target", "flags", ["target_type", "target_id"])

    op.create_table(
        "sos_alerts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("moment_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("moments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("ix_sos_alerts_user_id", "sos_alerts", ["user_id"])
    op.create_index("ix_sos_alerts_moment_id", "sos_alerts", ["moment_id"])
    # open alerts are what moderators poll
    op.create_index(
        "ix_sos_alerts_open", "sos_alerts", ["created_at"],
        postgresql_where=sa.text("resolved_at IS NULL"),
    )

def downgrade() -> None:
    op.drop_index("ix_sos_alerts_open", table_name="sos_alerts")
    op.drop_table("sos_alerts")
    op.drop_index("ix_flags_target", table_name="flags")
    op.drop_index("ix_flags_reporter_id", table_name="flags")
    op.drop_table("flags")
