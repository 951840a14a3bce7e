import uuid

import pytest

from app.errors import CardNotFound, InvalidRequest
from app.models.loyalty_card import LoyaltyCard
from app.schemas.award import AwardRequest, SourceType
from app.services.award_service import award_points
from app.services.balance_service import (
    get_card_balance,
    list_customer_balances,
    reconcile_legacy_points,
    resolve_points,
)
from app.services.enrollment_service import enroll_customer
from app.services.program_service import create_program


def award(db, program, customer_id, points, key, settings):
    return award_points(
        db,
        AwardRequest(
            customerId=customer_id,
            businessId=str(program.business_id),
            programId=str(program.id),
            points=points,
            sourceType=SourceType.MANUAL,
            description="Manual award",
            idempotencyKey=key,
        ),
        settings=settings,
    )


def test_resolve_points_reads_only_points_column():
    card = LoyaltyCard(points=42)

    assert resolve_points(card) == 42


@pytest.mark.parametrize(
    "points, points_balance, expected",
    [
        (15, 999, 15),
        (None, 30, 30),
        (None, None, 0),
        (-4, 10, 0),
        (None, -2, 0),
    ],
)
def test_reconcile_legacy_points(points, points_balance, expected):
    assert reconcile_legacy_points(points, points_balance) == expected


def test_balance_read_reflects_card(db_session, business, program, enrollment, customer_id, settings):
    response = award(db_session, program, customer_id, 25, "tx-1", settings)

    balance = get_card_balance(db_session, customer_id, str(program.id))

    assert balance.cardId == response.cardId
    assert balance.points == 25
    assert balance.tier == "STANDARD"
    assert balance.programName == "Gym Rewards"
    assert balance.businessName == "Iron Fitness"
    assert balance.cardNumber.startswith("GC-")


def test_balance_ignores_enrollment_cache(db_session, program, enrollment, customer_id, settings):
    award(db_session, program, customer_id, 10, "tx-1", settings)

    enrollment.points_cache = 9999
    db_session.commit()

    assert get_card_balance(db_session, customer_id, program.id).points == 10


def test_balance_without_card(db_session, program, enrollment, customer_id):
    with pytest.raises(CardNotFound):
        get_card_balance(db_session, customer_id, program.id)


def test_balance_with_bad_program_id(db_session, customer_id):
    with pytest.raises(InvalidRequest):
        get_card_balance(db_session, customer_id, "nope")


def test_list_customer_balances_highest_first(db_session, business, program, enrollment, customer_id, settings):
    other = create_program(db_session, business_id=business.id, name="Smoothie Club")
    enroll_customer(db_session, customer_id, other.id)

    award(db_session, program, customer_id, 5, "tx-1", settings)
    award(db_session, other, customer_id, 50, "tx-2", settings)

    balances = list_customer_balances(db_session, customer_id)

    assert [b.programName for b in balances] == ["Smoothie Club", "Gym Rewards"]
    assert [b.points for b in balances] == [50, 5]
    assert list_customer_balances(db_session, str(uuid.uuid4())) == []
