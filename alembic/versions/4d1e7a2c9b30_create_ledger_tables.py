"""create ledger tables

Revision ID: 4d1e7a2c9b30
Revises:
Create Date: 2026-10-12

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "4d1e7a2c9b30"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("businesses"):
        op.create_table(
            "businesses",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        )

    if not inspector.has_table("loyalty_programs"):
        op.create_table(
            "loyalty_programs",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("points_per_dollar", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("points_per_visit", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("first_purchase_bonus", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        )
        op.create_index("ix_loyalty_programs_business_id", "loyalty_programs", ["business_id"])

    if not inspector.has_table("program_enrollments"):
        op.create_table(
            "program_enrollments",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("customer_id", sa.String(length=100), nullable=False),
            sa.Column("program_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("loyalty_programs.id"), nullable=False),
            sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("points_cache", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("enrolled_at", sa.TIMESTAMP(), server_default=sa.func.now()),
            sa.Column("last_activity_at", sa.TIMESTAMP()),
            sa.UniqueConstraint("customer_id", "program_id", name="uq_program_enrollments_customer_program"),
        )

    if not inspector.has_table("loyalty_cards"):
        op.create_table(
            "loyalty_cards",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("customer_id", sa.String(length=100), nullable=False),
            sa.Column("business_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("businesses.id"), nullable=False),
            sa.Column("program_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("loyalty_programs.id"), nullable=False),
            sa.Column("card_number", sa.String(length=50), nullable=False, unique=True),
            sa.Column("tier", sa.String(length=20), nullable=False, server_default="STANDARD"),
            sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
            sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now()),
            sa.CheckConstraint("points >= 0", name="ck_loyalty_cards_points_non_negative"),
        )
        op.create_index(
            "uq_loyalty_cards_active_customer_program",
            "loyalty_cards",
            ["customer_id", "program_id"],
            unique=True,
            postgresql_where=sa.text("active"),
            sqlite_where=sa.text("active"),
        )

    if not inspector.has_table("card_activities"):
        op.create_table(
            "card_activities",
            sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
            sa.Column("card_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("loyalty_cards.id"), nullable=False),
            sa.Column("activity_type", sa.String(length=20), nullable=False),
            sa.Column("source_type", sa.String(length=20), nullable=False),
            sa.Column("points", sa.Integer(), nullable=False),
            sa.Column("description", sa.Text()),
            sa.Column("idempotency_key", sa.String(length=150), nullable=False, unique=True),
            sa.Column("balance_after", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        )
        op.create_index("ix_card_activities_card_id", "card_activities", ["card_id"])


def downgrade() -> None:
    op.drop_index("ix_card_activities_card_id", table_name="card_activities")
    op.drop_table("card_activities")
    op.drop_index("uq_loyalty_cards_active_customer_program", table_name="loyalty_cards")
    op.drop_table("loyalty_cards")
    op.drop_table("program_enrollments")
    op.drop_index("ix_loyalty_programs_business_id", table_name="loyalty_programs")
    op.drop_table("loyalty_programs")
    op.drop_table("businesses")
