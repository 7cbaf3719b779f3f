"""Initial Rovel schema."""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create chapter lock, catalog and record tables."""
    op.create_table(
        "chapter_locks",
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("content_id", sa.Integer(), nullable=False),
        sa.Column("chapter_id", sa.String(length=255), nullable=False),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_id", "content_id", "chapter_id"),
    )
    op.create_index("idx_chapter_locks_expires", "chapter_locks", ["expires_at"])
    op.create_index("idx_chapter_locks_user", "chapter_locks", ["user_id", "expires_at"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=255), primary_key=True),
        sa.Column("type", sa.String(length=50), nullable=False, server_default="guest"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "content",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("normalized_title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=False, server_default="manga"),
        sa.Column("cover", sa.Text(), nullable=True),
        sa.Column("author", sa.String(length=255), nullable=False, server_default="Unknown"),
        sa.Column(
            "genres", sa.String(length=500), nullable=False, server_default="Action, Adventure"
        ),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="Ongoing"),
        sa.Column("rating", sa.String(length=20), nullable=False, server_default="4.5"),
        sa.Column("chapters_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("normalized_title"),
    )
    op.create_index("ix_content_type", "content", ["type"])

    op.create_table(
        "chapters",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "content_id",
            sa.Integer(),
            sa.ForeignKey("content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("chapter_id", sa.String(length=255), nullable=False),
        sa.Column("normalized_title", sa.String(length=500), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("pages", postgresql.JSONB(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("content_id", "chapter_id", name="uq_chapter_content"),
    )
    op.create_index("idx_chapters_title", "chapters", ["normalized_title", "chapter_id"])

    op.create_table(
        "ads_config",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("config", postgresql.JSONB(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "uploads",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("filename", sa.String(length=500), nullable=True),
        sa.Column("content_type", sa.String(length=255), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_uploads_content_type", "uploads", ["content_type"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("ix_uploads_content_type", table_name="uploads")
    op.drop_table("uploads")

    op.drop_table("ads_config")

    op.drop_index("idx_chapters_title", table_name="chapters")
    op.drop_table("chapters")

    op.drop_index("ix_content_type", table_name="content")
    op.drop_table("content")

    op.drop_table("users")

    op.drop_index("idx_chapter_locks_user", table_name="chapter_locks")
    op.drop_index("idx_chapter_locks_expires", table_name="chapter_locks")
    op.drop_table("chapter_locks")
