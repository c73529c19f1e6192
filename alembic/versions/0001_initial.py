"""Initial schema: users, scenarios, recordings, text responses, ratings

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="applicant"),
        sa.Column("current_scenario_index", sa.Integer, nullable=False, server_default="0"),
        sa.Column("interview_started_at", sa.DateTime),
        sa.Column("completed_at", sa.DateTime),
        sa.Column("position_type", sa.String(20)),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="1"),
        sa.Column("full_name", sa.String(200)),
        sa.Column("phone_number", sa.String(40)),
        sa.Column("country", sa.String(120)),
        sa.Column("referred_by", sa.String(200)),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "scenarios",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("response_type", sa.String(10), nullable=False, server_default="audio"),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint("response_type IN ('audio', 'text')", name="ck_scenarios_response_type"),
    )
    op.create_index("ix_scenarios_display_order", "scenarios", ["display_order"])

    op.create_table(
        "recordings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("scenario_id", sa.Integer, sa.ForeignKey("scenarios.id"), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("file_format", sa.String(20), nullable=False, server_default="webm"),
        sa.Column("response_time", sa.Integer),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_recordings_user_id", "recordings", ["user_id"])
    op.create_index("ix_recordings_scenario_id", "recordings", ["scenario_id"])

    op.create_table(
        "text_responses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("scenario_id", sa.Integer, sa.ForeignKey("scenarios.id"), nullable=False),
        sa.Column("response_text", sa.Text, nullable=False),
        sa.Column("response_time", sa.Integer),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_text_responses_user_id", "text_responses", ["user_id"])
    op.create_index("ix_text_responses_scenario_id", "text_responses", ["scenario_id"])

    op.create_table(
        "response_ratings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("recording_id", sa.Integer, sa.ForeignKey("recordings.id"), unique=True),
        sa.Column("text_response_id", sa.Integer, sa.ForeignKey("text_responses.id"), unique=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("feedback", sa.Text),
        sa.Column("rated_by", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
        sa.CheckConstraint(
            "(recording_id IS NULL) <> (text_response_id IS NULL)",
            name="ck_response_ratings_single_target",
        ),
        sa.CheckConstraint("rating BETWEEN 1 AND 10", name="ck_response_ratings_range"),
    )


def downgrade():
    op.drop_table("response_ratings")
    op.drop_index("ix_text_responses_scenario_id", table_name="text_responses")
    op.drop_index("ix_text_responses_user_id", table_name="text_responses")
    op.drop_table("text_responses")
    op.drop_index("ix_recordings_scenario_id", table_name="recordings")
    op.drop_index("ix_recordings_user_id", table_name="recordings")
    op.drop_table("recordings")
    op.drop_index("ix_scenarios_display_order", table_name="scenarios")
    op.drop_table("scenarios")
    op.drop_index("ix_users_role", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
