"""One recording / text response per applicant and scenario

Revision ID: 0002_one_response_per_scenario
Revises: 0001_initial
Create Date: 2026-10-20 00:00:00.000000
"""
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002_one_response_per_scenario"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade():
    # batch mode so the constraint can also be added on SQLite
    with op.batch_alter_table("recordings") as batch:
        batch.create_unique_constraint("uq_recordings_user_scenario", ["user_id", "scenario_id"])
    with op.batch_alter_table("text_responses") as batch:
        batch.create_unique_constraint("uq_text_responses_user_scenario", ["user_id", "scenario_id"])


def downgrade():
    with op.batch_alter_table("text_responses") as batch:
        batch.drop_constraint("uq_text_responses_user_scenario", type_="unique")
    with op.batch_alter_table("recordings") as batch:
        batch.drop_constraint("uq_recordings_user_scenario", type_="unique")
