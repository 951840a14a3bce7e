import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.errors import ConcurrencyConflict, EnrollmentRequired, InvalidRequest
from app.services.ledger_store import create_card, get_active_card, get_enrollment


logger = logging.getLogger(__name__)

MAX_PROVISION_ATTEMPTS = 3


def generate_card_number(prefix: str, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now:%y%m%d-%H%M%S}-{secrets.randbelow(10000):04d}"


def ensure_card(
    db: Session,
    *,
    customer_id: str,
    business_id,
    program_id,
    settings: Settings | None = None,
):
    """Return the active card for an enrollment, creating it on first use.

    Must run before any other write of the surrounding transaction: a lost
    creation race (partial unique index on active cards, or a card number
    clash) rolls the session back and reads again.
    """
    settings = settings or get_settings()

    for attempt in range(1, MAX_PROVISION_ATTEMPTS + 1):
        enrollment = get_enrollment(db, customer_id, program_id)
        if enrollment is None:
            raise EnrollmentRequired(customer_id=customer_id, program_id=str(program_id))

        if business_id is not None and enrollment.business_id != business_id:
            raise InvalidRequest("Program does not belong to this business")

        card = get_active_card(db, customer_id, program_id)
        if card is not None:
            return card

        try:
            card = create_card(
                db,
                customer_id=customer_id,
                business_id=enrollment.business_id,
                program_id=program_id,
                card_number=generate_card_number(settings.card_number_prefix),
                tier=settings.default_card_tier,
            )
        except IntegrityError:
            db.rollback()
            logger.info(
                "card provisioning collided, reading again",
                extra={"customer_id": customer_id, "program_id": str(program_id), "attempt": attempt},
            )
            continue

        logger.info(
            "provisioned loyalty card",
            extra={
                "customer_id": customer_id,
                "program_id": str(program_id),
                "card_id": str(card.id),
                "card_number": card.card_number,
            },
        )
        return card

    raise ConcurrencyConflict("Could not provision a loyalty card")
