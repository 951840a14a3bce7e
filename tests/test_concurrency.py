"""
Concurrent awards against a file-backed SQLite database.

Each worker thread has its own session. SQLite serializes writers and the
card's version column turns lost updates into retried conflicts.
"""

import threading
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.config import Settings
from app.db import Base
from app.models.card_activity import CardActivity
from app.models.loyalty_card import LoyaltyCard
from app.schemas.award import AwardRequest, SourceType
from app.services.award_service import award_points
from app.services.card_provisioner import ensure_card
from app.services.enrollment_service import enroll_customer
from app.services.program_service import create_business, create_program

CUSTOMER_ID = "customer-99"

RETRYING = Settings(award_max_attempts=8, award_retry_backoff_seconds=0.01)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    finally:
        engine.dispose()


@pytest.fixture
def enrolled_program(session_factory):
    db = session_factory()
    try:
        business = create_business(db, "Corner Cafe")
        program = create_program(db, business_id=business.id, name="Coffee Stamps")
        enroll_customer(db, CUSTOMER_ID, program.id)
        return {"program_id": str(program.id), "business_id": str(business.id)}
    finally:
        db.close()


def run_concurrently(session_factory, requests):
    barrier = threading.Barrier(len(requests))

    def worker(request):
        db = session_factory()
        try:
            barrier.wait()
            return award_points(db, request, settings=RETRYING)
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=len(requests)) as pool:
        return list(pool.map(worker, requests))


def make_request(ids, points, key):
    return AwardRequest(
        customerId=CUSTOMER_ID,
        businessId=ids["business_id"],
        programId=ids["program_id"],
        points=points,
        sourceType=SourceType.SCAN,
        idempotencyKey=key,
    )


def snapshot(session_factory):
    db = session_factory()
    try:
        return db.query(LoyaltyCard).all(), db.query(CardActivity).all()
    finally:
        db.close()


def test_two_awards_to_same_card_both_apply(session_factory, enrolled_program):
    db = session_factory()
    try:
        ensure_card(db, customer_id=CUSTOMER_ID, business_id=None, program_id=uuid.UUID(enrolled_program["program_id"]))
        db.commit()
    finally:
        db.close()

    responses = run_concurrently(
        session_factory,
        [make_request(enrolled_program, 5, "tx-5"), make_request(enrolled_program, 7, "tx-7")],
    )

    cards, activities = snapshot(session_factory)
    assert [c.points for c in cards] == [12]
    assert sorted(a.idempotency_key for a in activities) == ["tx-5", "tx-7"]
    assert sorted(r.newBalance for r in responses) in ([5, 12], [7, 12])
    assert not any(r.duplicate for r in responses)


def test_first_awards_race_provisions_one_card(session_factory, enrolled_program):
    responses = run_concurrently(
        session_factory,
        [make_request(enrolled_program, 3, "first-a"), make_request(enrolled_program, 4, "first-b")],
    )

    cards, activities = snapshot(session_factory)
    assert len(cards) == 1
    assert cards[0].points == 7
    assert len(activities) == 2
    assert {r.cardId for r in responses} == {str(cards[0].id)}


def test_same_key_raced_applies_once(session_factory, enrolled_program):
    responses = run_concurrently(
        session_factory,
        [make_request(enrolled_program, 10, "tx-1"), make_request(enrolled_program, 10, "tx-1")],
    )

    cards, activities = snapshot(session_factory)
    assert [c.points for c in cards] == [10]
    assert len(activities) == 1
    assert [r.newBalance for r in responses] == [10, 10]
    assert sorted(r.duplicate for r in responses) == [False, True]
