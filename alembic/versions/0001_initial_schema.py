"""initial schema: users, trips, expenses, mileage logs

Revision ID: 0001
Revises:
Create Date: 2026-10-16 12:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "name", name="uq_trips_user_name"),
    )
    op.create_index(op.f("ix_trips_id"), "trips", ["id"], unique=False)
    op.create_index(op.f("ix_trips_user_id"), "trips", ["user_id"], unique=False)

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("vendor", sa.String(), nullable=False),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("cost", sa.Numeric(10, 2), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("trip_name", sa.String(), nullable=False),
        sa.Column("receipt_path", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_expenses_id"), "expenses", ["id"], unique=False)
    op.create_index(op.f("ix_expenses_user_id"), "expenses", ["user_id"], unique=False)
    op.create_index(op.f("ix_expenses_type"), "expenses", ["type"], unique=False)
    op.create_index(op.f("ix_expenses_vendor"), "expenses", ["vendor"], unique=False)
    op.create_index(op.f("ix_expenses_trip_name"), "expenses", ["trip_name"], unique=False)

    op.create_table(
        "mileage_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=True),
        sa.Column("trip_date", sa.Date(), nullable=False),
        sa.Column("start_odometer", sa.Numeric(10, 1), nullable=False),
        sa.Column("end_odometer", sa.Numeric(10, 1), nullable=False),
        sa.Column("calculated_distance", sa.Numeric(10, 1), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=True),
        sa.Column("entry_method", sa.Enum("manual", "ocr", name="entry_method"), nullable=False),
        sa.Column("start_image_url", sa.String(), nullable=True),
        sa.Column("end_image_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_mileage_logs_id"), "mileage_logs", ["id"], unique=False)
    op.create_index(op.f("ix_mileage_logs_user_id"), "mileage_logs", ["user_id"], unique=False)
    op.create_index(op.f("ix_mileage_logs_trip_id"), "mileage_logs", ["trip_id"], unique=False)


def downgrade() -> None:
    op.drop_table("mileage_logs")
    sa.Enum(name="entry_method").drop(op.get_bind(), checkfirst=True)
    op.drop_table("expenses")
    op.drop_table("trips")
    op.drop_table("users")
