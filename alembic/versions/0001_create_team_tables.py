"""create team, team_member and related tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(190), nullable=False),
        sa.Column("email", sa.String(190), nullable=True),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("org_id", "name", name="uq_team_org_id_name"),
    )
    op.create_index("ix_team_org_id", "team", ["org_id"])

    op.create_table(
        "team_member",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.BigInteger(), nullable=False),
        sa.Column("team_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("external", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("permission", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("org_id", "team_id", "user_id", name="uq_team_member_org_id_team_id_user_id"),
    )
    op.create_index("ix_team_member_org_id", "team_member", ["org_id"])
    op.create_index("ix_team_member_team_id", "team_member", ["team_id"])

    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("login", sa.String(190), nullable=False, unique=True),
        sa.Column("email", sa.String(190), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=True),
    )

    op.create_table(
        "user_auth",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("auth_module", sa.String(190), nullable=False),
        sa.Column("auth_id", sa.String(190), nullable=False),
        sa.Column("created", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_auth_user_id", "user_auth", ["user_id"])

    op.create_table(
        "dashboard_acl",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.BigInteger(), nullable=False),
        sa.Column("dashboard_id", sa.BigInteger(), nullable=False),
        sa.Column("team_id", sa.BigInteger(), nullable=True),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("permission", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_dashboard_acl_team_id", "dashboard_acl", ["team_id"])

    op.create_table(
        "team_role",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("org_id", sa.BigInteger(), nullable=False),
        sa.Column("team_id", sa.BigInteger(), nullable=False),
        sa.Column("role_id", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_team_role_team_id", "team_role", ["team_id"])

    op.create_table(
        "permission",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("role_id", sa.BigInteger(), nullable=False),
        sa.Column("action", sa.String(190), nullable=False),
        sa.Column("scope", sa.String(190), nullable=False),
    )
    op.create_index("ix_permission_scope", "permission", ["scope"])


def downgrade() -> None:
    op.drop_index("ix_permission_scope", table_name="permission")
    op.drop_table("permission")
    op.drop_index("ix_team_role_team_id", table_name="team_role")
    op.drop_table("team_role")
    op.drop_index("ix_dashboard_acl_team_id", table_name="dashboard_acl")
    op.drop_table("dashboard_acl")
    op.drop_index("ix_user_auth_user_id", table_name="user_auth")
    op.drop_table("user_auth")
    op.drop_table("user")
    op.drop_index("ix_team_member_team_id", table_name="team_member")
    op.drop_index("ix_team_member_org_id", table_name="team_member")
    op.drop_table("team_member")
    op.drop_index("ix_team_org_id", table_name="team")
    op.drop_table("team")
