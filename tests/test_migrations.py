"""
Alembic upgrade against SQLite files:
1. A fresh database gets the ledger tables
2. A loyalty_cards table from the multi-balance era is brought to the ledger's shape
"""

import uuid
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic import command
from alembic.config import Config
from sqlalchemy.orm import sessionmaker

from app.config import get_settings
from app.models.loyalty_card import LoyaltyCard
from app.services.ledger_store import NewActivity, apply_delta

ROOT = Path(__file__).resolve().parents[1]

PROGRAM = uuid.uuid4()
BUSINESS = uuid.uuid4()
RICH, POOR, NEGATIVE = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


def upgrade_to_head():
    cfg = Config()
    cfg.set_main_option("script_location", str(ROOT / "alembic"))
    command.upgrade(cfg, "head")


def create_legacy_cards(engine):
    with engine.begin() as conn:
        conn.execute(
            sa.text(
                """
                CREATE TABLE loyalty_cards (
                    id CHAR(32) PRIMARY KEY,
                    customer_id VARCHAR(100) NOT NULL,
                    business_id CHAR(32) NOT NULL,
                    program_id CHAR(32) NOT NULL,
                    card_number VARCHAR(50) NOT NULL UNIQUE,
                    tier VARCHAR(20) DEFAULT 'STANDARD',
                    points INTEGER DEFAULT 0,
                    points_balance INTEGER DEFAULT 0,
                    total_points_earned INTEGER DEFAULT 0,
                    is_active BOOLEAN DEFAULT 1,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                )
                """
            )
        )
        rows = [
            (RICH, "legacy-1", None, 40, 90, "GC-1"),
            (POOR, "legacy-1", 5, 0, 5, "GC-2"),
            (NEGATIVE, "legacy-2", -3, 10, 10, "GC-3"),
        ]
        for card_id, customer, points, balance, earned, number in rows:
            conn.execute(
                sa.text(
                    "INSERT INTO loyalty_cards "
                    "(id, customer_id, business_id, program_id, card_number, points, points_balance, "
                    "total_points_earned, is_active) "
                    "VALUES (:id, :customer, :business, :program, :number, :points, :balance, :earned, 1)"
                ),
                {
                    "id": card_id.hex,
                    "customer": customer,
                    "business": BUSINESS.hex,
                    "program": PROGRAM.hex,
                    "number": number,
                    "points": points,
                    "balance": balance,
                    "earned": earned,
                },
            )


def test_fresh_database_gets_ledger_tables(database_url):
    upgrade_to_head()

    inspector = sa.inspect(sa.create_engine(database_url))
    assert {"businesses", "loyalty_programs", "program_enrollments", "loyalty_cards", "card_activities"} <= set(
        inspector.get_table_names()
    )
    columns = {c["name"] for c in inspector.get_columns("loyalty_cards")}
    assert {"active", "version", "points"} <= columns
    assert "uq_loyalty_cards_active_customer_program" in {i["name"] for i in inspector.get_indexes("loyalty_cards")}


def test_legacy_cards_are_reshaped(database_url):
    engine = sa.create_engine(database_url)
    create_legacy_cards(engine)

    upgrade_to_head()

    inspector = sa.inspect(engine)
    columns = {c["name"] for c in inspector.get_columns("loyalty_cards")}
    assert {"active", "version"} <= columns
    assert not {"is_active", "points_balance", "total_points_earned"} & columns
    assert "uq_loyalty_cards_active_customer_program" in {i["name"] for i in inspector.get_indexes("loyalty_cards")}

    with engine.connect() as conn:
        cards = {
            row.id: row
            for row in conn.execute(sa.text("SELECT id, points, active, version FROM loyalty_cards"))
        }
    assert cards[RICH.hex].points == 40
    assert cards[RICH.hex].active
    assert not cards[POOR.hex].active
    assert cards[NEGATIVE.hex].points == 0
    assert cards[RICH.hex].version == 1


def test_ledger_writes_through_reshaped_card(database_url):
    engine = sa.create_engine(database_url)
    create_legacy_cards(engine)
    upgrade_to_head()

    db = sessionmaker(bind=engine, autoflush=False)()
    try:
        apply_delta(db, RICH, 2, NewActivity("EARN", "SCAN", "after migration", "post-migration-1"))
        db.commit()

        card = db.query(LoyaltyCard).filter(LoyaltyCard.id == RICH).one()
        assert card.points == 42
        assert card.version == 2
    finally:
        db.close()
