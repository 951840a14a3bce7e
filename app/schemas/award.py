from enum import Enum
from typing import Optional

from pydantic import BaseModel, StrictInt


class SourceType(str, Enum):
    SCAN = "SCAN"
    MANUAL = "MANUAL"
    PROMO = "PROMO"
    ADJUSTMENT = "ADJUSTMENT"


class AwardRequest(BaseModel):
    customerId: str
    businessId: str
    programId: str
    points: StrictInt
    sourceType: SourceType
    description: str = "Points awarded"
    idempotencyKey: str


class RedeemRequest(BaseModel):
    customerId: str
    programId: str
    points: StrictInt
    description: str = "Points redeemed"
    idempotencyKey: str


class AwardResponse(BaseModel):
    success: bool
    cardId: Optional[str] = None
    newBalance: Optional[int] = None
    duplicate: bool = False
    error: Optional[str] = None
    message: Optional[str] = None
