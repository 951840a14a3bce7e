import math
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import CardNotFound
from app.schemas.card import CardActivityOut, CardBalanceOut, CustomerActivityPage
from app.services.balance_service import get_card_balance, list_customer_balances
from app.services.ledger_store import get_card, list_activities, list_customer_activities
from app.services.validators import parse_uuid

router = APIRouter(tags=["cards"])


@router.get("/customers/{customer_id}/cards", response_model=list[CardBalanceOut])
def read_customer_cards(customer_id: str, db: Session = Depends(get_db)):
    return list_customer_balances(db, customer_id)


@router.get("/customers/{customer_id}/programs/{program_id}/card", response_model=CardBalanceOut)
def read_card_balance(customer_id: str, program_id: str, db: Session = Depends(get_db)):
    return get_card_balance(db, customer_id, program_id)


@router.get("/customers/{customer_id}/activities", response_model=CustomerActivityPage)
def read_customer_activities(
    customer_id: str,
    programId: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    program_id = parse_uuid(programId, "programId") if programId else None

    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    rows, total = list_customer_activities(db, customer_id, program_id=program_id, limit=limit, offset=offset)

    return {
        "customerId": customer_id,
        "total": total,
        "page": offset // limit + 1,
        "limit": limit,
        "totalPages": math.ceil(total / limit),
        "items": [
            {
                "id": str(activity.id),
                "cardId": str(card.id),
                "programId": str(card.program_id),
                "activityType": activity.activity_type,
                "sourceType": activity.source_type,
                "points": activity.points,
                "balanceAfter": activity.balance_after,
                "description": activity.description,
                "idempotencyKey": activity.idempotency_key,
                "createdAt": activity.created_at,
            }
            for activity, card in rows
        ],
    }


@router.get("/cards/{card_id}/activities", response_model=list[CardActivityOut])
def read_card_activities(
    card_id: str,
    limit: int = 10,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    card_id = parse_uuid(card_id, "cardId")
    if not get_card(db, card_id):
        raise CardNotFound(card_id=str(card_id))

    limit = max(1, min(limit, 200))
    offset = max(0, offset)

    return list_activities(db, card_id, limit=limit, offset=offset)
