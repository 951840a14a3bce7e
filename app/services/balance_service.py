from sqlalchemy.orm import Session

from app.errors import CardNotFound
from app.models.business import Business
from app.models.loyalty_card import LoyaltyCard
from app.models.loyalty_program import LoyaltyProgram
from app.schemas.card import CardBalanceOut
from app.services.validators import parse_uuid, require_text


def resolve_points(card: LoyaltyCard) -> int:
    """Displayed balance of a card: ``LoyaltyCard.points`` and nothing else."""
    return int(card.points or 0)


def reconcile_legacy_points(points, points_balance=None) -> int:
    """One-time fold of the legacy balance columns into ``points``.

    ``points`` wins when set, ``points_balance`` fills in for rows written
    before it existed. ``total_points_earned`` is a lifetime counter, not a
    balance, so it never takes part. The result is clamped at zero.
    Mirrors the SQL in the reconciliation migration.
    """
    for candidate in (points, points_balance):
        if candidate is not None:
            return max(int(candidate), 0)
    return 0


def _to_balance(card: LoyaltyCard, program_name: str, business_name: str) -> CardBalanceOut:
    return CardBalanceOut(
        cardId=str(card.id),
        points=resolve_points(card),
        tier=card.tier,
        cardNumber=card.card_number,
        programId=str(card.program_id),
        programName=program_name,
        businessName=business_name,
    )


def _balance_query(db: Session):
    return (
        db.query(LoyaltyCard, LoyaltyProgram.name, Business.name)
        .join(LoyaltyProgram, LoyaltyProgram.id == LoyaltyCard.program_id)
        .join(Business, Business.id == LoyaltyProgram.business_id)
        .filter(LoyaltyCard.active.is_(True))
    )


def get_card_balance(db: Session, customer_id: str, program_id) -> CardBalanceOut:
    customer_id = require_text(customer_id, "customerId")
    program_id = parse_uuid(program_id, "programId")

    row = (
        _balance_query(db)
        .filter(LoyaltyCard.customer_id == customer_id)
        .filter(LoyaltyCard.program_id == program_id)
        .first()
    )
    if not row:
        raise CardNotFound(customer_id=customer_id, program_id=str(program_id))

    card, program_name, business_name = row
    return _to_balance(card, program_name, business_name)


def list_customer_balances(db: Session, customer_id: str) -> list[CardBalanceOut]:
    customer_id = require_text(customer_id, "customerId")

    rows = (
        _balance_query(db)
        .filter(LoyaltyCard.customer_id == customer_id)
        .order_by(LoyaltyCard.points.desc(), LoyaltyCard.created_at.asc())
        .all()
    )
    return [_to_balance(card, program_name, business_name) for card, program_name, business_name in rows]
