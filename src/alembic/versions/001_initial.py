"""Initial schema: projects, applications, milestones, disputes, transition logs, users

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ASSIGNED_ONLY = sa.text("status = 'ASSIGNED'")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("full_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("role", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(length=5000), nullable=True),
        sa.Column("partner_id", sa.Uuid(), nullable=False),
        sa.Column("supervisor_id", sa.Uuid(), nullable=True),
        sa.Column("university_id", sa.Uuid(), nullable=True),
        sa.Column("department_id", sa.Uuid(), nullable=True),
        sa.Column("course_id", sa.Uuid(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("currency", sqlmodel.sql.sqltypes.AutoString(length=3), nullable=False),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_title", "projects", ["title"], unique=False)
    op.create_index("ix_projects_partner_id", "projects", ["partner_id"], unique=False)
    op.create_index("ix_projects_supervisor_id", "projects", ["supervisor_id"], unique=False)
    op.create_index("ix_projects_university_id", "projects", ["university_id"], unique=False)
    op.create_index("ix_projects_created_at", "projects", ["created_at"], unique=False)

    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("applicant_type", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=True),
        sa.Column("student_ids", sa.JSON(), nullable=False),
        sa.Column("statement", sqlmodel.sql.sqltypes.AutoString(length=20000), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("status", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("offer_expires_at", sa.DateTime(), nullable=True),
        sa.Column("skill_match", sa.Float(), nullable=False),
        sa.Column("rating_score", sa.Float(), nullable=False),
        sa.Column("on_time_rate", sa.Float(), nullable=False),
        sa.Column("rework_rate", sa.Float(), nullable=False),
        sa.Column("portfolio_score", sa.Float(), nullable=False),
        sa.Column("auto_score", sa.Float(), nullable=False),
        sa.Column("manual_partner_score", sa.Float(), nullable=True),
        sa.Column("manual_supervisor_score", sa.Float(), nullable=True),
        sa.Column("final_score", sa.Float(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_applications_project_id", "applications", ["project_id"], unique=False)
    op.create_index("ix_applications_final_score", "applications", ["final_score"], unique=False)
    op.create_index(
        "ix_applications_project_status", "applications", ["project_id", "status"], unique=False
    )
    # At most one ASSIGNED application per project
    op.create_index(
        "uq_applications_one_assigned_per_project",
        "applications",
        ["project_id"],
        unique=True,
        postgresql_where=_ASSIGNED_ONLY,
        sqlite_where=_ASSIGNED_ONLY,
    )

    op.create_table(
        "milestones",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column("scope", sqlmodel.sql.sqltypes.AutoString(length=5000), nullable=False),
        sa.Column(
            "acceptance_criteria", sqlmodel.sql.sqltypes.AutoString(length=5000), nullable=False
        ),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("currency", sqlmodel.sql.sqltypes.AutoString(length=3), nullable=False),
        sa.Column("status", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("escrow_status", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("supervisor_gate", sa.Boolean(), nullable=False),
        sa.Column("supervisor_approved_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_milestones_project_id", "milestones", ["project_id"], unique=False)
    op.create_index("ix_milestones_status", "milestones", ["status"], unique=False)

    op.create_table(
        "disputes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("milestone_id", sa.Uuid(), nullable=False),
        sa.Column("raised_by", sa.Uuid(), nullable=False),
        sa.Column("raised_by_role", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("reason", sqlmodel.sql.sqltypes.AutoString(length=5000), nullable=False),
        sa.Column(
            "milestone_status", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["milestone_id"], ["milestones.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_disputes_milestone_id", "disputes", ["milestone_id"], unique=False)
    op.create_index("ix_disputes_raised_by", "disputes", ["raised_by"], unique=False)

    op.create_table(
        "transition_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        sa.Column("action", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=False),
        sa.Column("from_status", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=True),
        sa.Column("to_status", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=True),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column("actor_role", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=True),
        sa.Column("request_id", sqlmodel.sql.sqltypes.AutoString(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_transition_logs_entity", "transition_logs", ["entity_type", "entity_id"], unique=False
    )
    op.create_index(
        "ix_transition_logs_project_created",
        "transition_logs",
        ["project_id", "created_at"],
        unique=False,
    )
    op.create_index("ix_transition_logs_actor_id", "transition_logs", ["actor_id"], unique=False)


def downgrade() -> None:
    op.drop_table("transition_logs")
    op.drop_table("disputes")
    op.drop_table("milestones")
    op.drop_index("uq_applications_one_assigned_per_project", table_name="applications")
    op.drop_table("applications")
    op.drop_table("projects")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
