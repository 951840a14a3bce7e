import re
import uuid
from datetime import datetime

import pytest

from app.errors import EnrollmentRequired, InvalidRequest
from app.models.loyalty_card import LoyaltyCard
from app.services import card_provisioner
from app.services.card_provisioner import ensure_card, generate_card_number


def test_card_number_format():
    number = generate_card_number("GC", datetime(2026, 3, 4, 5, 6, 7))

    assert re.fullmatch(r"GC-260304-050607-\d{4}", number)


def test_creates_card_for_enrollment(db_session, program, enrollment, customer_id, settings):
    card = ensure_card(
        db_session,
        customer_id=customer_id,
        business_id=program.business_id,
        program_id=program.id,
        settings=settings,
    )
    db_session.commit()

    assert card.points == 0
    assert card.active is True
    assert card.tier == settings.default_card_tier
    assert card.business_id == program.business_id


def test_returns_existing_active_card(db_session, program, enrollment, customer_id, settings):
    first = ensure_card(db_session, customer_id=customer_id, business_id=None, program_id=program.id, settings=settings)
    db_session.commit()
    second = ensure_card(db_session, customer_id=customer_id, business_id=None, program_id=program.id, settings=settings)

    assert second.id == first.id
    assert db_session.query(LoyaltyCard).count() == 1


def test_never_enrolls_silently(db_session, program, settings):
    with pytest.raises(EnrollmentRequired):
        ensure_card(db_session, customer_id="stranger", business_id=None, program_id=program.id, settings=settings)

    assert db_session.query(LoyaltyCard).count() == 0


def test_rejects_foreign_business(db_session, program, enrollment, customer_id, settings):
    with pytest.raises(InvalidRequest):
        ensure_card(
            db_session,
            customer_id=customer_id,
            business_id=uuid.uuid4(),
            program_id=program.id,
            settings=settings,
        )


def test_card_number_clash_is_retried(db_session, program, enrollment, customer_id, settings, monkeypatch):
    from app.services.enrollment_service import enroll_customer

    enroll_customer(db_session, "customer-7", program.id)
    taken = ensure_card(db_session, customer_id="customer-7", business_id=None, program_id=program.id, settings=settings)
    db_session.commit()
    taken_number = taken.card_number

    numbers = iter([taken_number, "GC-260101-000000-0001"])
    monkeypatch.setattr(card_provisioner, "generate_card_number", lambda prefix: next(numbers))

    card = ensure_card(db_session, customer_id=customer_id, business_id=None, program_id=program.id, settings=settings)
    db_session.commit()

    assert card.card_number == "GC-260101-000000-0001"
    assert db_session.query(LoyaltyCard).count() == 2
