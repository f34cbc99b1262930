from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261001_0002"
down_revision = "20261001_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "moments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("city_code", sa.String(length=16), nullable=False, server_default="UNKNOWN"),
        sa.Column("starts_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("ends_at > starts_at", name="ck_moments_time_order"),
        sa.CheckConstraint("max_participants >= 1", name="ck_moments_capacity_positive"),
        sa.CheckConstraint("status IN ('active','hidden','expired')", name="ck_moments_status"),
    )
    op.create_index("ix_moments_creator_id", "moments", ["creator_id"])
    op.create_index("ix_moments_status_ends_at", "moments", ["status", "ends_at"])
    op.create_index("ix_moments_lat_lng", "moments", ["lat", "lng"])

    op.create_table(
        "moment_participants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("moment_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("moments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("joined_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_moment_participants_moment_id", "moment_participants", ["moment_id"])
    op.create_index("ix_moment_participants_user_id", "moment_participants", ["user_id"])
    op.create_unique_constraint("uq_moment_participant_once", "moment_participants", ["moment_id", "user_id"])

    op.create_table(
        "moment_messages",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("moment_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("moments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_moment_messages_moment_id", "moment_messages", ["moment_id"])
    op.create_index("ix_moment_messages_user_id", "moment_messages", ["user_id"])

    op.create_table(
        "moment_photos",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("moment_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("moments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("uploader_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(length=64), nullable=False),
        sa.Column("caption", sa.String(length=280), nullable=True),
        sa.Column("is_preview", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("uploaded_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_moment_photos_moment_id", "moment_photos", ["moment_id"])
    op.create_index("ix_moment_photos_uploader_id", "moment_photos", ["uploader_id"])
    op.create_index("ix_moment_photos_uploaded_at", "moment_photos", ["uploaded_at"])

def downgrade() -> None:
    op.drop_table("moment_photos")
    op.drop_table("moment_messages")
    op.drop_constraint("uq_moment_participant_once", "moment_participants", type_="unique")
    op.drop_table("moment_participants")
    op.drop_index("ix_moments_lat_lng", table_name="moments")
    op.drop_index("ix_moments_status_ends_at", table_name="moments")
    op.drop_index("ix_moments_creator_id", table_name="moments")
    op.drop_table("moments")
