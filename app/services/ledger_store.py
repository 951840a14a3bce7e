"""Persistence primitives for enrollments, cards and the card activity log.

``apply_delta`` is the single writer of ``LoyaltyCard.points``. Every other
module reads balances; none of them adds to a points-like column.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.errors import CardNotFound, ConcurrencyConflict, InsufficientPoints, LedgerError, PersistenceFailure
from app.models.card_activity import CardActivity
from app.models.enrollment import ProgramEnrollment
from app.models.loyalty_card import LoyaltyCard


logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
_CONFLICT_PGCODES = {"40001", "40P01", "55P03", "57014"}


def _utcnow() -> datetime:
    # Naive UTC, matching the TIMESTAMP columns.
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class NewActivity:
    activity_type: str
    source_type: str
    description: str | None
    idempotency_key: str


class DuplicateActivity(Exception):
    """The idempotency key is already in the log; nothing was changed."""

    def __init__(self, activity: CardActivity):
        self.activity = activity
        super().__init__(activity.idempotency_key)


def classify_db_error(exc: SQLAlchemyError, **context) -> LedgerError:
    if isinstance(exc, StaleDataError):
        return ConcurrencyConflict(**context)

    if isinstance(exc, DBAPIError):
        orig = exc.orig
        if getattr(orig, "pgcode", None) in _CONFLICT_PGCODES:
            return ConcurrencyConflict(**context)
        if "database is locked" in str(orig):
            return ConcurrencyConflict(**context)

    return PersistenceFailure(**context)


def get_enrollment(db: Session, customer_id: str, program_id, *, active_only: bool = True):
    q = (
        db.query(ProgramEnrollment)
        .filter(ProgramEnrollment.customer_id == customer_id)
        .filter(ProgramEnrollment.program_id == program_id)
    )
    if active_only:
        q = q.filter(ProgramEnrollment.status == "ACTIVE")
    return q.first()


def get_active_card(db: Session, customer_id: str, program_id):
    return (
        db.query(LoyaltyCard)
        .filter(LoyaltyCard.customer_id == customer_id)
        .filter(LoyaltyCard.program_id == program_id)
        .filter(LoyaltyCard.active.is_(True))
        .first()
    )


def get_card(db: Session, card_id):
    return db.query(LoyaltyCard).filter(LoyaltyCard.id == card_id).first()


def create_card(
    db: Session,
    *,
    customer_id: str,
    business_id,
    program_id,
    card_number: str,
    tier: str,
) -> LoyaltyCard:
    now = _utcnow()
    card = LoyaltyCard(
        customer_id=customer_id,
        business_id=business_id,
        program_id=program_id,
        card_number=card_number,
        tier=tier,
        points=0,
        active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(card)
    db.flush()
    return card


def find_activity(db: Session, idempotency_key: str):
    return db.query(CardActivity).filter(CardActivity.idempotency_key == idempotency_key).first()


def list_activities(db: Session, card_id, *, limit: int = 50, offset: int = 0):
    return (
        db.query(CardActivity)
        .filter(CardActivity.card_id == card_id)
        .order_by(CardActivity.created_at.desc(), CardActivity.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def apply_delta(db: Session, card_id, delta: int, activity: NewActivity) -> CardActivity:
    """Apply ``delta`` to a card inside the caller's open transaction.

    Locks the card row, refuses a known idempotency key with
    ``DuplicateActivity``, moves ``points``, appends the activity and refreshes
    the enrollment's cached counter. Nothing is committed here; the caller
    commits or rolls back the whole unit.
    """
    card = (
        db.query(LoyaltyCard)
        .filter(LoyaltyCard.id == card_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if card is None or not card.active:
        raise CardNotFound(card_id=str(card_id))

    existing = find_activity(db, activity.idempotency_key)
    if existing is not None:
        raise DuplicateActivity(existing)

    new_balance = int(card.points or 0) + int(delta)
    if new_balance < 0:
        raise InsufficientPoints(card_id=str(card.id), balance=int(card.points or 0), requested=-int(delta))

    now = _utcnow()
    card.points = new_balance
    card.updated_at = now

    record = CardActivity(
        card_id=card.id,
        activity_type=activity.activity_type,
        source_type=activity.source_type,
        points=int(delta),
        description=activity.description,
        idempotency_key=activity.idempotency_key,
        balance_after=new_balance,
        created_at=now,
    )
    db.add(record)

    enrollment = (
        db.query(ProgramEnrollment)
        .filter(ProgramEnrollment.customer_id == card.customer_id)
        .filter(ProgramEnrollment.program_id == card.program_id)
        .with_for_update()
        .first()
    )
    if enrollment is not None:
        enrollment.points_cache = new_balance
        enrollment.last_activity_at = now

    db.flush()

    logger.debug(
        "card delta applied",
        extra={
            "card_id": str(card.id),
            "delta": int(delta),
            "balance_after": new_balance,
            "idempotency_key": activity.idempotency_key,
        },
    )
    return record


def list_customer_activities(db: Session, customer_id: str, *, program_id=None, limit: int = 50, offset: int = 0):
    """Activities across every card of a customer, newest first, with the unpaged total."""
    q = (
        db.query(CardActivity, LoyaltyCard)
        .join(LoyaltyCard, LoyaltyCard.id == CardActivity.card_id)
        .filter(LoyaltyCard.customer_id == customer_id)
    )
    if program_id is not None:
        q = q.filter(LoyaltyCard.program_id == program_id)

    total = q.count()
    rows = (
        q.order_by(CardActivity.created_at.desc(), CardActivity.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
