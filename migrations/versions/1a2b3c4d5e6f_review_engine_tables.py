"""Review engine tables: calls, criteria, evaluator profiles, proposals, assignments, evaluations, activity.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ACTIVE_PREDICATE = sa.text("status IN ('pending', 'accepted')")


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = inspector.get_table_names()

    if "calls" not in existing_tables:
        op.create_table(
            "calls",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("status", sa.String(), server_default="open", nullable=False),
            sa.Column("required_evaluators", sa.Integer(), nullable=True),
            sa.Column("conflict_policies", sa.JSON(), nullable=True),
            sa.Column("assignment_method", sa.String(), server_default="manual", nullable=False),
            sa.Column("blind_review", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_calls_status", "calls", ["status"])

    if "evaluation_criteria" not in existing_tables:
        op.create_table(
            "evaluation_criteria",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("call_id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.String(), server_default="", nullable=False),
            sa.Column("weight", sa.Float(), server_default="0", nullable=False),
            sa.Column("max_score", sa.Float(), server_default="5", nullable=False),
            sa.Column("scale", sa.JSON(), nullable=True),
            sa.Column("category", sa.String(), server_default="innovation", nullable=False),
            sa.Column("position", sa.Integer(), server_default="0", nullable=False),
            sa.Column("version", sa.Integer(), server_default="1", nullable=False),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["call_id"], ["calls.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_evaluation_criteria_call_id", "evaluation_criteria", ["call_id"])
        op.create_index("ix_evaluation_criteria_version", "evaluation_criteria", ["version"])
        op.create_index("ix_evaluation_criteria_is_active", "evaluation_criteria", ["is_active"])

    if "evaluator_profiles" not in existing_tables:
        op.create_table(
            "evaluator_profiles",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("role", sa.String(), server_default="evaluator", nullable=False),
            sa.Column("department", sa.String(), nullable=True),
            sa.Column("campus", sa.String(), nullable=True),
            sa.Column("expertise", sa.JSON(), nullable=True),
            sa.Column("max_capacity", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
            sa.Column("assignment_revision", sa.Integer(), server_default="0", nullable=False),
            sa.Column("last_assignment_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_evaluator_profiles_email", "evaluator_profiles", ["email"])
        op.create_index("ix_evaluator_profiles_role", "evaluator_profiles", ["role"])
        op.create_index("ix_evaluator_profiles_department", "evaluator_profiles", ["department"])
        op.create_index("ix_evaluator_profiles_campus", "evaluator_profiles", ["campus"])

    if "proposals" not in existing_tables:
        op.create_table(
            "proposals",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("call_id", sa.Uuid(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("project_type", sa.String(), nullable=True),
            sa.Column("keywords", sa.JSON(), nullable=True),
            sa.Column("department", sa.String(), nullable=True),
            sa.Column("author_ids", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(), server_default="submitted", nullable=False),
            sa.Column("decided_by", sa.Uuid(), nullable=True),
            sa.Column("decided_at", sa.DateTime(), nullable=True),
            sa.Column("decision_note", sa.String(), nullable=True),
            sa.Column("assignment_revision", sa.Integer(), server_default="0", nullable=False),
            sa.Column("last_assignment_at", sa.DateTime(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["call_id"], ["calls.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_proposals_call_id", "proposals", ["call_id"])
        op.create_index("ix_proposals_department", "proposals", ["department"])
        op.create_index("ix_proposals_status", "proposals", ["status"])

    if "evaluator_assignments" not in existing_tables:
        op.create_table(
            "evaluator_assignments",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("proposal_id", sa.Uuid(), nullable=False),
            sa.Column("evaluator_id", sa.Uuid(), nullable=False),
            sa.Column("assigned_by", sa.Uuid(), nullable=True),
            sa.Column("method", sa.String(), server_default="manual", nullable=False),
            sa.Column("status", sa.String(), server_default="pending", nullable=False),
            sa.Column("assigned_at", sa.DateTime(), nullable=False),
            sa.Column("responded_at", sa.DateTime(), nullable=True),
            sa.Column("decline_reason", sa.String(), nullable=True),
            sa.Column("decline_comment", sa.String(), nullable=True),
            sa.Column("coi_declared", sa.Boolean(), server_default=sa.false(), nullable=False),
            sa.Column("coi_details", sa.String(), nullable=True),
            sa.Column("removed_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["evaluator_id"], ["evaluator_profiles.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_evaluator_assignments_proposal_id", "evaluator_assignments", ["proposal_id"]
        )
        op.create_index(
            "ix_evaluator_assignments_evaluator_id", "evaluator_assignments", ["evaluator_id"]
        )
        op.create_index("ix_evaluator_assignments_status", "evaluator_assignments", ["status"])
        op.create_index(
            "uq_evaluator_assignments_active_pair",
            "evaluator_assignments",
            ["proposal_id", "evaluator_id"],
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        )

    if "evaluations" not in existing_tables:
        op.create_table(
            "evaluations",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("proposal_id", sa.Uuid(), nullable=False),
            sa.Column("evaluator_id", sa.Uuid(), nullable=False),
            sa.Column("rubric", sa.JSON(), nullable=True),
            sa.Column("overall_score", sa.Float(), nullable=True),
            sa.Column("recommendation", sa.String(), nullable=True),
            sa.Column("public_comments", sa.String(), server_default="", nullable=False),
            sa.Column("confidential_comments", sa.String(), server_default="", nullable=False),
            sa.Column(
                "ai_assistance_used", sa.Boolean(), server_default=sa.false(), nullable=False
            ),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("revision", sa.Integer(), server_default="0", nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["proposal_id"], ["proposals.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["evaluator_id"], ["evaluator_profiles.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("proposal_id", "evaluator_id", name="uq_evaluations_pair"),
        )
        op.create_index("ix_evaluations_proposal_id", "evaluations", ["proposal_id"])
        op.create_index("ix_evaluations_evaluator_id", "evaluations", ["evaluator_id"])

    if "activity_entries" not in existing_tables:
        op.create_table(
            "activity_entries",
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("actor_id", sa.Uuid(), nullable=True),
            sa.Column("action", sa.String(), nullable=False),
            sa.Column("entity_type", sa.String(), server_default="", nullable=False),
            sa.Column("entity_id", sa.Uuid(), nullable=True),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_activity_entries_actor_id", "activity_entries", ["actor_id"])
        op.create_index("ix_activity_entries_action", "activity_entries", ["action"])
        op.create_index("ix_activity_entries_entity_id", "activity_entries", ["entity_id"])


def downgrade() -> None:
    for table in (
        "activity_entries",
        "evaluations",
        "evaluator_assignments",
        "proposals",
        "evaluator_profiles",
        "evaluation_criteria",
        "calls",
    ):
        op.drop_table(table)
