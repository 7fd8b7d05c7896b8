"""create attendance and fees

Revision ID: 20261019_attendance_fees
Revises: 20261019_create_roster
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_attendance_fees"
down_revision: Union[str, Sequence[str], None] = "20261019_create_roster"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False),
        sa.Column("subject", sa.String(80), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("marked_by_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_attendance"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE",
                                name="fk_attendance_student_id_students"),
        sa.ForeignKeyConstraint(["marked_by_id"], ["users.id"], ondelete="SET NULL",
                                name="fk_attendance_marked_by_id_users"),
        sa.UniqueConstraint("student_id", "date", "subject", name="uq_attendance_student_date_subject"),
    )
    op.create_index("ix_attendance_date", "attendance", ["date"])

    op.create_table(
        "fees",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("fee_type", sa.String(20), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="pending"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(10), nullable=True),
        sa.Column("receipt_number", sa.String(32), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_fees"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="CASCADE",
                                name="fk_fees_student_id_students"),
    )
    op.create_index("ix_fees_student_id", "fees", ["student_id"])
    op.create_index("ix_fees_status", "fees", ["status"])
    op.create_index("ix_fees_created_at", "fees", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_fees_created_at", table_name="fees")
    op.drop_index("ix_fees_status", table_name="fees")
    op.drop_index("ix_fees_student_id", table_name="fees")
    op.drop_table("fees")
    op.drop_index("ix_attendance_date", table_name="attendance")
    op.drop_table("attendance")
