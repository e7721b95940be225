"""initial schema

Revision ID: 5b1e0c9d2a47
Revises:
Create Date: 2026-10-19 09:12:41.318205
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "5b1e0c9d2a47"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # --- goals ---
    op.create_table(
        "goals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column("payout_account_id", sa.String(length=255), nullable=False),
        sa.Column("edit_secret_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_goals_target_positive"),
    )
    with op.batch_alter_table("goals") as batch_op:
        batch_op.create_index(batch_op.f("ix_goals_created_at"), ["created_at"], unique=False)

    # --- milestones ---
    op.create_table(
        "milestones",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("goal_id", sa.String(length=36), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("goal_id", "sort_order", name="uq_milestones_goal_order"),
        sa.CheckConstraint("target_amount_cents > 0", name="ck_milestones_target_positive"),
    )
    with op.batch_alter_table("milestones") as batch_op:
        batch_op.create_index(batch_op.f("ix_milestones_goal_id"), ["goal_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_milestones_created_at"), ["created_at"], unique=False)

    # --- donations ---
    op.create_table(
        "donations",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("goal_id", sa.String(length=36), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider_txn_id", sa.String(length=255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("donor_name", sa.String(length=160), nullable=True),
        sa.Column("message", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("provider_txn_id", name="uq_donations_provider_txn_id"),
        sa.CheckConstraint("amount_cents > 0", name="ck_donations_amount_positive"),
        sa.CheckConstraint("status IN ('pending', 'completed', 'failed')", name="ck_donations_status"),
    )
    with op.batch_alter_table("donations") as batch_op:
        batch_op.create_index(batch_op.f("ix_donations_goal_id"), ["goal_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_donations_status"), ["status"], unique=False)
        batch_op.create_index(batch_op.f("ix_donations_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_donations_goal_status_created", ["goal_id", "status", "created_at"], unique=False)

    # --- payment_events ---
    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("event_id", sa.String(length=120), nullable=False),
        sa.Column("type", sa.String(length=120), nullable=False),
        sa.Column("livemode", sa.Boolean(), nullable=False),
        sa.Column("checkout_session_id", sa.String(length=120), nullable=True),
        sa.Column("goal_id", sa.String(length=36), sa.ForeignKey("goals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("donation_id", sa.Integer(), sa.ForeignKey("donations.id", ondelete="SET NULL"), nullable=True),
        sa.Column("outcome", sa.String(length=20), nullable=False),
        sa.Column("detail", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("event_id", name="uq_payment_events_event_id"),
        sa.CheckConstraint(
            "outcome IN ('recorded', 'duplicate', 'unpaid', 'rejected', 'ignored')",
            name="ck_payment_events_outcome",
        ),
    )
    with op.batch_alter_table("payment_events") as batch_op:
        batch_op.create_index(batch_op.f("ix_payment_events_type"), ["type"], unique=False)
        batch_op.create_index(batch_op.f("ix_payment_events_checkout_session_id"), ["checkout_session_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_payment_events_goal_id"), ["goal_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_payment_events_donation_id"), ["donation_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_payment_events_created_at"), ["created_at"], unique=False)
        batch_op.create_index("ix_payment_events_goal_created", ["goal_id", "created_at"], unique=False)


def downgrade():
    op.drop_table("payment_events")
    op.drop_table("donations")
    op.drop_table("milestones")
    op.drop_table("goals")
