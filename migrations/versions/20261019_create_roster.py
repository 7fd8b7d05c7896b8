"""create students and users

Revision ID: 20261019_create_roster
Revises:
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261019_create_roster"
down_revision: Union[str, Sequence[str], None] = None
branch_labels = None
depends_on = None

LIVE = sa.text("deleted_at IS NULL")

def upgrade() -> None:
    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(160), nullable=True),
        sa.Column("class_name", sa.String(10), nullable=False),
        sa.Column("section", sa.String(1), nullable=False),
        sa.Column("roll_no", sa.Integer(), nullable=False),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("parent_name", sa.String(120), nullable=False),
        sa.Column("parent_phone", sa.String(16), nullable=False),
        sa.Column("emergency_phone", sa.String(16), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("photo_url", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_students"),
    )
    op.create_index("uq_students_roll_no_live", "students", ["roll_no"], unique=True,
                    sqlite_where=LIVE, postgresql_where=LIVE)
    op.create_index("uq_students_email_live", "students", ["email"], unique=True,
                    sqlite_where=LIVE, postgresql_where=LIVE)
    op.create_index("ix_students_class_section_status", "students", ["class_name", "section", "status"])
    op.create_index("ix_students_created_at", "students", ["created_at"])
    op.create_index("ix_students_deleted_at", "students", ["deleted_at"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(60), nullable=False),
        sa.Column("email", sa.String(160), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("first_name", sa.String(60), nullable=False),
        sa.Column("last_name", sa.String(60), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.ForeignKeyConstraint(["student_id"], ["students.id"], ondelete="SET NULL",
                                name="fk_users_student_id_students"),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

def downgrade() -> None:
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_students_deleted_at", table_name="students")
    op.drop_index("ix_students_created_at", table_name="students")
    op.drop_index("ix_students_class_section_status", table_name="students")
    op.drop_index("uq_students_email_live", table_name="students")
    op.drop_index("uq_students_roll_no_live", table_name="students")
    op.drop_table("students")
