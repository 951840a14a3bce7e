import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import EnrollmentRequired, PersistenceFailure
from app.models.enrollment import ProgramEnrollment
from app.models.loyalty_card import LoyaltyCard
from app.services.ledger_store import get_active_card, get_enrollment
from app.services.program_service import get_active_program
from app.services.validators import parse_uuid, require_text


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _reactivate_latest_card(db: Session, customer_id: str, program_id):
    if get_active_card(db, customer_id, program_id) is not None:
        return
    card = (
        db.query(LoyaltyCard)
        .filter(LoyaltyCard.customer_id == customer_id)
        .filter(LoyaltyCard.program_id == program_id)
        .order_by(LoyaltyCard.created_at.desc())
        .first()
    )
    if card is not None:
        card.active = True
        card.updated_at = _utcnow()


def enroll_customer(db: Session, customer_id: str, program_id) -> ProgramEnrollment:
    """Accept an enrollment. Idempotent; a previously deactivated one is reactivated.

    No card is created here: the first award provisions it.
    """
    customer_id = require_text(customer_id, "customerId")
    program = get_active_program(db, program_id)

    enrollment = get_enrollment(db, customer_id, program.id, active_only=False)
    if enrollment is None:
        enrollment = ProgramEnrollment(
            customer_id=customer_id,
            program_id=program.id,
            business_id=program.business_id,
            status="ACTIVE",
            points_cache=0,
            enrolled_at=_utcnow(),
        )
        db.add(enrollment)
    elif enrollment.status != "ACTIVE":
        enrollment.status = "ACTIVE"
        _reactivate_latest_card(db, customer_id, program.id)
    else:
        return enrollment

    try:
        db.commit()
    except IntegrityError:
        # Concurrent acceptance of the same invitation.
        db.rollback()
        enrollment = get_enrollment(db, customer_id, program.id, active_only=False)
        if enrollment is None:
            raise PersistenceFailure(customer_id=customer_id, program_id=str(program.id))
        return enrollment

    db.refresh(enrollment)
    logger.info(
        "customer enrolled",
        extra={"customer_id": customer_id, "program_id": str(program.id), "business_id": str(program.business_id)},
    )
    return enrollment


def deactivate_enrollment(db: Session, customer_id: str, program_id) -> ProgramEnrollment:
    """Soft-deactivate an enrollment and its card. Rows are never deleted."""
    customer_id = require_text(customer_id, "customerId")
    program_id = parse_uuid(program_id, "programId")

    enrollment = get_enrollment(db, customer_id, program_id)
    if enrollment is None:
        raise EnrollmentRequired(customer_id=customer_id, program_id=str(program_id))

    enrollment.status = "INACTIVE"
    card = get_active_card(db, customer_id, program_id)
    if card is not None:
        card.active = False
        card.updated_at = _utcnow()

    db.commit()
    db.refresh(enrollment)
    logger.info("enrollment deactivated", extra={"customer_id": customer_id, "program_id": str(program_id)})
    return enrollment
