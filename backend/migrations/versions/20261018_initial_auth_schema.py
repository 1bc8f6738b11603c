"""Initial authorization schema: branches, employees, grants, sessions, audit

Revision ID: 20261018_initial_auth
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_auth"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "branches",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True, unique=True),
        sa.Column("reception_password_hash", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="employee"),
        sa.Column("branch_id", sa.String(length=64), sa.ForeignKey("branches.id"), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("operator_pin_hash", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_employees_branch_id", "employees", ["branch_id"])
    op.create_index("ix_employees_branch_status", "employees", ["branch_id", "status"])

    op.create_table(
        "branch_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("employee_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("branch_id", sa.String(length=64), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("assignment_type", sa.String(length=32), nullable=False, server_default="temporary"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_branch_assignments_employee_id", "branch_assignments", ["employee_id"])
    op.create_index("ix_branch_assignments_branch_id", "branch_assignments", ["branch_id"])
    op.create_index(
        "ix_branch_assignments_branch_dates",
        "branch_assignments",
        ["branch_id", "start_date", "end_date"],
    )

    op.create_table(
        "reception_branch_access",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("branch_id", sa.String(length=64), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("granted_by_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("granted_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("user_id", "branch_id", name="uq_reception_branch_access"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_reception_branch_access_user", "reception_branch_access", ["user_id"])
    op.create_index("ix_reception_branch_access_branch", "reception_branch_access", ["branch_id"])

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("issued_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.String(length=64), nullable=True),
        sa.Column("replaced_by_jti", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_refresh_tokens_jti", "refresh_tokens", ["jti"], unique=True)
    op.create_index("ix_refresh_tokens_user_active", "refresh_tokens", ["user_id", "revoked_at"])

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=True),
        sa.Column("branch_id", sa.String(length=64), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("resource", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_security_events_user_id", "security_events", ["user_id"])
    op.create_index("ix_security_events_branch_id", "security_events", ["branch_id"])
    op.create_index("ix_security_events_event_type", "security_events", ["event_type"])
    op.create_index("ix_security_events_success", "security_events", ["success"])
    op.create_index("ix_security_events_occurred_at", "security_events", ["occurred_at"])
    op.create_index("ix_security_events_user_type", "security_events", ["user_id", "event_type"])

    op.create_table(
        "operator_switch_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("branch_id", sa.String(length=64), sa.ForeignKey("branches.id"), nullable=False),
        sa.Column("session_user_id", sa.String(length=128), nullable=False),
        sa.Column("switched_to_id", sa.Integer(), sa.ForeignKey("employees.id"), nullable=False),
        sa.Column("is_cross_branch", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("home_branch_id", sa.String(length=64), nullable=True),
        sa.Column("switched_at", sa.DateTime(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_operator_switch_log_branch_time", "operator_switch_log", ["branch_id", "switched_at"])

    op.create_table(
        "pin_lockouts",
        sa.Column("lockout_key", sa.String(length=255), primary_key=True),
        sa.Column("failure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("first_failure_at", sa.Float(), nullable=True),
        sa.Column("locked_until", sa.Float(), nullable=True),
    )


def downgrade():
    op.drop_table("pin_lockouts")
    op.drop_index("ix_operator_switch_log_branch_time", table_name="operator_switch_log")
    op.drop_table("operator_switch_log")
    op.drop_table("security_events")
    op.drop_table("refresh_tokens")
    op.drop_table("reception_branch_access")
    op.drop_table("branch_assignments")
    op.drop_table("employees")
    op.drop_table("branches")
