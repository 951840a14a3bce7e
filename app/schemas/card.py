from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class CardBalanceOut(BaseModel):
    cardId: str
    points: int
    tier: str
    cardNumber: str
    programId: str
    programName: str
    businessName: str


class CardActivityOut(BaseModel):
    id: UUID
    card_id: UUID

    activity_type: str
    source_type: str

    points: int
    description: Optional[str] = None

    idempotency_key: str
    balance_after: int

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerActivityItem(BaseModel):
    id: str
    cardId: str
    programId: str
    activityType: str
    sourceType: str
    points: int
    balanceAfter: int
    description: Optional[str] = None
    idempotencyKey: str
    createdAt: Optional[datetime] = None


class CustomerActivityPage(BaseModel):
    customerId: str
    total: int
    page: int
    limit: int
    totalPages: int
    items: list[CustomerActivityItem]
