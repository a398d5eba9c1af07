"""init schema: users + notes

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # users (accounts)
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("otp_code", sa.Text(), nullable=True),
        sa.Column("otp_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status in ('pending','verified')", name="ck_users_users_status"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # notes (owner referenced by email, no FK)
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("user_email", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notes_user_email_created_at", "notes", ["user_email", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notes_user_email_created_at", table_name="notes")
    op.drop_table("notes")
    op.drop_table("users")
