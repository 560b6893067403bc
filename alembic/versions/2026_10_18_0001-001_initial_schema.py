"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

All 4 tables as defined in app/models/database_models.py:
bible_verses, chat_records, chat_sessions, counseling_states.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    chat_role = sa.Enum("user", "assistant", "system", name="chatrole")
    counseling_step = sa.Enum("initial", "exploration", "analysis", "followup", name="counselingstep")

    # ── bible_verses ──────────────────────────────────────────────────────
    op.create_table(
        "bible_verses",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("book", sa.String(64), nullable=False, index=True),
        sa.Column("chapter", sa.Integer, nullable=False),
        sa.Column("verse", sa.Integer, nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("translation", sa.String(64), nullable=False),
        sa.Column("embedding", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("translation", "book", "chapter", "verse", name="uq_verse_ref"),
    )
    op.create_index("ix_verse_book_chapter_verse", "bible_verses", ["book", "chapter", "verse"])

    # ── chat_records ──────────────────────────────────────────────────────
    op.create_table(
        "chat_records",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("session_id", sa.String(255), nullable=False, index=True),
        sa.Column("role", chat_role, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("verses", sa.JSON, nullable=False),
        sa.Column("prayer", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_chat_records_session_created", "chat_records", ["session_id", "created_at"])

    # ── chat_sessions ─────────────────────────────────────────────────────
    op.create_table(
        "chat_sessions",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("session_id", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("locale", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ── counseling_states ─────────────────────────────────────────────────
    op.create_table(
        "counseling_states",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("session_id", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("step", counseling_step, nullable=False),
        sa.Column("initial_concern", sa.Text, nullable=True),
        sa.Column("questions", sa.JSON, nullable=False),
        sa.Column("answers", sa.JSON, nullable=False),
        sa.Column("current_question_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_complete", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("counseling_states")
    op.drop_table("chat_sessions")
    op.drop_index("ix_chat_records_session_created", table_name="chat_records")
    op.drop_table("chat_records")
    op.drop_index("ix_verse_book_chapter_verse", table_name="bible_verses")
    op.drop_table("bible_verses")

    sa.Enum(name="counselingstep").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="chatrole").drop(op.get_bind(), checkfirst=True)
