"""Award engine: the one public way to move a card balance.

Awards and redemptions share one pipeline: validate, resolve the card,
``apply_delta`` and commit in a single transaction, then publish a change
event. A replayed idempotency key returns the balance its first application
produced, flagged ``duplicate``.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.errors import CardNotFound, ConcurrencyConflict, EnrollmentRequired, IdempotencyConflict, LedgerError
from app.schemas.award import AwardRequest, AwardResponse, RedeemRequest, SourceType
from app.schemas.event import PointsChangedEvent
from app.services.card_provisioner import ensure_card
from app.services.change_notifier import ChangeNotifier, publish
from app.services.ledger_store import (
    DuplicateActivity,
    NewActivity,
    apply_delta,
    classify_db_error,
    find_activity,
    get_active_card,
    get_enrollment,
)
from app.services.validators import parse_uuid, require_positive_points, require_text


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CardRef:
    id: object
    customer_id: str
    business_id: object
    program_id: object


@dataclass
class _Outcome:
    card_id: str
    customer_id: str
    business_id: str
    program_id: str
    new_balance: int
    duplicate: bool


def _set_statement_timeout(db: Session, settings: Settings) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    # SET LOCAL takes no bind parameters; the value is an int from config.
    db.execute(text(f"SET LOCAL statement_timeout = {int(settings.award_statement_timeout_ms)}"))


def _outcome_from(card: _CardRef, balance: int, duplicate: bool) -> _Outcome:
    return _Outcome(
        card_id=str(card.id),
        customer_id=card.customer_id,
        business_id=str(card.business_id),
        program_id=str(card.program_id),
        new_balance=int(balance),
        duplicate=duplicate,
    )


def _replayed(card: _CardRef, existing, activity: NewActivity) -> _Outcome:
    # A key belongs to one card and one kind of movement.
    if existing.card_id != card.id or existing.activity_type != activity.activity_type:
        raise IdempotencyConflict(
            idempotency_key=existing.idempotency_key,
            recorded_activity=existing.activity_type,
            requested_activity=activity.activity_type,
        )
    return _outcome_from(card, existing.balance_after, duplicate=True)


def _commit_delta(db: Session, card, delta: int, activity: NewActivity, settings: Settings) -> _Outcome:
    # Rollback expires or expunges the ORM object; keep plain values.
    card = _CardRef(card.id, card.customer_id, card.business_id, card.program_id)
    _set_statement_timeout(db, settings)
    try:
        record = apply_delta(db, card.id, delta, activity)
        new_balance = record.balance_after
        db.commit()
    except DuplicateActivity as dup:
        db.rollback()
        return _replayed(card, dup.activity, activity)
    except IntegrityError:
        # A concurrent request with the same key committed first.
        db.rollback()
        existing = find_activity(db, activity.idempotency_key)
        if existing is None:
            raise
        return _replayed(card, existing, activity)

    return _outcome_from(card, new_balance, duplicate=False)


def _run_with_retry(db: Session, operation, *, settings: Settings, sleep, context: dict) -> _Outcome:
    attempts = settings.award_max_attempts
    conflict = None

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrencyConflict as exc:
            db.rollback()
            conflict = exc
        except LedgerError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            error = classify_db_error(exc, **context)
            if not error.retryable:
                logger.exception(
                    "ledger persistence failure customer_id=%s program_id=%s idempotency_key=%s",
                    context.get("customer_id"),
                    context.get("program_id"),
                    context.get("idempotency_key"),
                )
                raise error from exc
            conflict = error

        if attempt < attempts:
            delay = settings.award_retry_backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                "concurrent card update, retrying",
                extra={**context, "attempt": attempt, "retry_in_seconds": delay},
            )
            sleep(delay)

    logger.warning("giving up after concurrent card updates", extra={**context, "attempts": attempts})
    raise conflict


def _event(event_type: str, outcome: _Outcome, delta: int) -> PointsChangedEvent:
    return PointsChangedEvent(
        type=event_type,
        customerId=outcome.customer_id,
        businessId=outcome.business_id,
        programId=outcome.program_id,
        cardId=outcome.card_id,
        pointsAdded=delta,
        newBalance=outcome.new_balance,
        timestamp=datetime.now(timezone.utc),
    )


def _response(outcome: _Outcome) -> AwardResponse:
    return AwardResponse(
        success=True,
        cardId=outcome.card_id,
        newBalance=outcome.new_balance,
        duplicate=outcome.duplicate,
    )


def award_points(
    db: Session,
    request: AwardRequest,
    *,
    notifier: ChangeNotifier | None = None,
    settings: Settings | None = None,
    sleep=time.sleep,
) -> AwardResponse:
    settings = settings or get_settings()

    points = require_positive_points(request.points)
    idempotency_key = require_text(request.idempotencyKey, "idempotencyKey")
    customer_id = require_text(request.customerId, "customerId")
    program_id = parse_uuid(request.programId, "programId")
    business_id = parse_uuid(request.businessId, "businessId")

    source_type = SourceType(request.sourceType)
    activity = NewActivity(
        activity_type="ADJUST" if source_type == SourceType.ADJUSTMENT else "EARN",
        source_type=source_type.value,
        description=request.description,
        idempotency_key=idempotency_key,
    )
    context = {
        "customer_id": customer_id,
        "program_id": str(program_id),
        "idempotency_key": idempotency_key,
    }

    def attempt() -> _Outcome:
        card = ensure_card(
            db,
            customer_id=customer_id,
            business_id=business_id,
            program_id=program_id,
            settings=settings,
        )
        return _commit_delta(db, card, points, activity, settings)

    outcome = _run_with_retry(db, attempt, settings=settings, sleep=sleep, context=context)

    if outcome.duplicate:
        logger.info("duplicate award ignored", extra={**context, "card_id": outcome.card_id})
    else:
        logger.info(
            "points awarded",
            extra={
                **context,
                "card_id": outcome.card_id,
                "points": points,
                "source_type": source_type.value,
                "new_balance": outcome.new_balance,
            },
        )
        publish(notifier, _event("POINTS_AWARDED", outcome, points))

    return _response(outcome)


def redeem_points(
    db: Session,
    request: RedeemRequest,
    *,
    notifier: ChangeNotifier | None = None,
    settings: Settings | None = None,
    sleep=time.sleep,
) -> AwardResponse:
    settings = settings or get_settings()

    points = require_positive_points(request.points)
    idempotency_key = require_text(request.idempotencyKey, "idempotencyKey")
    customer_id = require_text(request.customerId, "customerId")
    program_id = parse_uuid(request.programId, "programId")

    activity = NewActivity(
        activity_type="REDEEM",
        source_type="REDEMPTION",
        description=request.description,
        idempotency_key=idempotency_key,
    )
    context = {
        "customer_id": customer_id,
        "program_id": str(program_id),
        "idempotency_key": idempotency_key,
    }

    def attempt() -> _Outcome:
        if get_enrollment(db, customer_id, program_id) is None:
            raise EnrollmentRequired(customer_id=customer_id, program_id=str(program_id))
        card = get_active_card(db, customer_id, program_id)
        if card is None:
            raise CardNotFound(customer_id=customer_id, program_id=str(program_id))
        return _commit_delta(db, card, -points, activity, settings)

    outcome = _run_with_retry(db, attempt, settings=settings, sleep=sleep, context=context)

    if outcome.duplicate:
        logger.info("duplicate redemption ignored", extra={**context, "card_id": outcome.card_id})
    else:
        logger.info(
            "points redeemed",
            extra={**context, "card_id": outcome.card_id, "points": points, "new_balance": outcome.new_balance},
        )
        publish(notifier, _event("POINTS_REDEEMED", outcome, -points))

    return _response(outcome)
