"""Studio access schema: users, studios, memberships, invitations, invite links.

Revision ID: 0001_studio_access
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_studio_access"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

CURRENT_STUDIO = "NULLIF(current_setting('app.current_studio_id', true), '')::uuid"
CURRENT_USER = "NULLIF(current_setting('app.current_user_id', true), '')::uuid"

# Studio-scoped tables whose rows are only visible within the current studio.
# Invitations and invite links are looked up by token before any studio
# context exists, so RLS is enabled but not forced on them (the application
# role owns the tables); other roles only see the current studio's rows.
STUDIO_SCOPED_TABLES = ["studio_invitations", "studio_invite_links"]


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.text("now()"),
    )


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # users (NOT RLS-scoped)
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("password_hash", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("email = lower(email)", name="ck_users_email_lowercase"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # studios (NOT RLS-scoped: slugs and names are resolved before membership)
    op.create_table(
        "studios",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        _uuid("owner_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("logo_url", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_studios_slug", "studios", ["slug"], unique=True)
    op.create_index("ix_studios_name", "studios", ["name"])
    op.create_index("ix_studios_owner_id", "studios", ["owner_id"])

    # studio_memberships
    op.create_table(
        "studio_memberships",
        _uuid("id", primary_key=True),
        _uuid("studio_id", sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        _uuid("user_id", sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        _timestamp("joined_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("studio_id", "user_id", name="uq_studio_memberships_studio_user"),
        sa.CheckConstraint(
            "role IN ('owner', 'admin', 'member')", name="ck_studio_memberships_role"
        ),
        sa.CheckConstraint(
            "status IN ('active', 'pending', 'removed')", name="ck_studio_memberships_status"
        ),
    )
    op.create_index("ix_studio_memberships_studio_id", "studio_memberships", ["studio_id"])
    op.create_index("ix_studio_memberships_user_id", "studio_memberships", ["user_id"])

    # studio_invitations
    op.create_table(
        "studio_invitations",
        _uuid("id", primary_key=True),
        _uuid("studio_id", sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        _uuid("invited_by", sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("token_hash", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        _timestamp("expires_at"),
        _timestamp("accepted_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.UniqueConstraint("token_hash", name="uq_studio_invitations_token_hash"),
        sa.CheckConstraint("role IN ('admin', 'member')", name="ck_studio_invitations_role"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'revoked')", name="ck_studio_invitations_status"
        ),
    )
    op.create_index("ix_studio_invitations_studio_id", "studio_invitations", ["studio_id"])
    op.create_index("ix_studio_invitations_email", "studio_invitations", ["email"])
    # One pending invitation per (studio, email)
    op.execute(
        "CREATE UNIQUE INDEX uq_studio_invitations_pending_email "
        "ON studio_invitations (studio_id, lower(email)) WHERE status = 'pending'"
    )

    # studio_invite_links
    op.create_table(
        "studio_invite_links",
        _uuid("id", primary_key=True),
        _uuid("studio_id", sa.ForeignKey("studios.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.Text(), nullable=False),
        sa.Column("default_role", sa.Text(), nullable=False, server_default="member"),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.UniqueConstraint("studio_id", name="uq_studio_invite_links_studio_id"),
        sa.UniqueConstraint("token_hash", name="uq_studio_invite_links_token_hash"),
        sa.CheckConstraint("default_role = 'member'", name="ck_studio_invite_links_role"),
    )

    # -----------------------------------------------------------------------
    # Row-Level Security
    # -----------------------------------------------------------------------

    # Memberships: visible within the current studio, or when they are the
    # caller's own (needed to list a user's studios across tenants).
    op.execute("ALTER TABLE studio_memberships ENABLE ROW LEVEL SECURITY")
    op.execute(f"""
        CREATE POLICY studio_isolation ON studio_memberships
        USING (studio_id = {CURRENT_STUDIO} OR user_id = {CURRENT_USER})
    """)
    op.execute("ALTER TABLE studio_memberships FORCE ROW LEVEL SECURITY")

    for table in STUDIO_SCOPED_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")
        op.execute(f"""
            CREATE POLICY studio_isolation ON {table}
            USING (studio_id = {CURRENT_STUDIO})
        """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table in reversed(["studio_memberships", *STUDIO_SCOPED_TABLES]):
        op.execute(f"DROP POLICY IF EXISTS studio_isolation ON {table}")
        op.execute(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY")

    op.drop_table("studio_invite_links")
    op.execute("DROP INDEX IF EXISTS uq_studio_invitations_pending_email")
    op.drop_table("studio_invitations")
    op.drop_table("studio_memberships")
    op.drop_table("studios")
    op.drop_table("users")
