"""reconcile legacy card balance columns into loyalty_cards.points

Brings a pre-existing loyalty_cards table, which 4d1e7a2c9b30 leaves alone, to
the shape the ledger writes through:

- is_active is renamed to active, version is added;
- points_balance is folded into points once (points first, then
  points_balance, never below zero) and total_points_earned is dropped;
- extra active cards for one (customer, program) are deactivated, keeping the
  highest balance, so the active-card unique index and points check can be
  created;
- the enrollment cache is resynced from the active cards.

Key types are not converted: rows keyed by integers must be migrated to the
UUID / string keys before this revision runs.

Revision ID: 7f3b0c5e8d21
Revises: 4d1e7a2c9b30
Create Date: 2026-10-12

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "7f3b0c5e8d21"
down_revision: Union[str, Sequence[str], None] = "4d1e7a2c9b30"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


LEGACY_CARD_COLUMNS = ("points_balance", "total_points_earned")
ACTIVE_CARD_INDEX = "uq_loyalty_cards_active_customer_program"
POINTS_CHECK = "ck_loyalty_cards_points_non_negative"


def _card_columns(bind) -> set:
    return {c["name"] for c in sa.inspect(bind).get_columns("loyalty_cards")}


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("loyalty_cards"):
        return

    card_columns = _card_columns(bind)

    with op.batch_alter_table("loyalty_cards") as batch:
        if "active" not in card_columns and "is_active" in card_columns:
            batch.alter_column("is_active", new_column_name="active", existing_type=sa.Boolean())
        elif "active" not in card_columns:
            batch.add_column(sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()))
        if "version" not in card_columns:
            batch.add_column(sa.Column("version", sa.Integer(), nullable=False, server_default="1"))

    op.execute("UPDATE loyalty_cards SET active = TRUE WHERE active IS NULL")

    if "points_balance" in card_columns:
        op.execute(
            """
            UPDATE loyalty_cards
            SET points = CASE
                WHEN COALESCE(points, points_balance, 0) < 0 THEN 0
                ELSE COALESCE(points, points_balance, 0)
            END
            """
        )
    op.execute("UPDATE loyalty_cards SET points = 0 WHERE points IS NULL OR points < 0")

    # One active card per (customer, program): the richest one stays.
    op.execute(
        """
        UPDATE loyalty_cards
        SET active = FALSE
        WHERE active AND EXISTS (
            SELECT 1 FROM loyalty_cards other
            WHERE other.customer_id = loyalty_cards.customer_id
              AND other.program_id = loyalty_cards.program_id
              AND other.active
              AND (
                other.points > loyalty_cards.points
                OR (other.points = loyalty_cards.points AND other.id > loyalty_cards.id)
              )
        )
        """
    )

    # Reflect again: the first batch may have rebuilt the table.
    inspector = sa.inspect(bind)
    columns = {c["name"]: c for c in inspector.get_columns("loyalty_cards")}
    checks = {c["name"] for c in inspector.get_check_constraints("loyalty_cards")}

    with op.batch_alter_table("loyalty_cards") as batch:
        for column in LEGACY_CARD_COLUMNS:
            if column in columns:
                batch.drop_column(column)
        if columns["points"]["nullable"]:
            batch.alter_column("points", existing_type=sa.Integer(), nullable=False, server_default="0")
        if columns["active"]["nullable"]:
            batch.alter_column("active", existing_type=sa.Boolean(), nullable=False, server_default=sa.true())
        if POINTS_CHECK not in checks:
            batch.create_check_constraint(POINTS_CHECK, "points >= 0")

    indexes = {i["name"] for i in sa.inspect(bind).get_indexes("loyalty_cards")}
    if ACTIVE_CARD_INDEX not in indexes:
        op.create_index(
            ACTIVE_CARD_INDEX,
            "loyalty_cards",
            ["customer_id", "program_id"],
            unique=True,
            postgresql_where=sa.text("active"),
            sqlite_where=sa.text("active"),
        )

    if inspector.has_table("program_enrollments"):
        op.execute(
            """
            UPDATE program_enrollments
            SET points_cache = (
                SELECT lc.points FROM loyalty_cards lc
                WHERE lc.customer_id = program_enrollments.customer_id
                  AND lc.program_id = program_enrollments.program_id
                  AND lc.active
            )
            WHERE EXISTS (
                SELECT 1 FROM loyalty_cards lc
                WHERE lc.customer_id = program_enrollments.customer_id
                  AND lc.program_id = program_enrollments.program_id
                  AND lc.active
            )
            """
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("loyalty_cards"):
        return

    card_columns = _card_columns(bind)

    # Columns come back empty; their old values are not recoverable.
    with op.batch_alter_table("loyalty_cards") as batch:
        for column in LEGACY_CARD_COLUMNS:
            if column not in card_columns:
                batch.add_column(sa.Column(column, sa.Integer(), nullable=True))
