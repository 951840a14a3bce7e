from datetime import datetime
from decimal import Decimal
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class BusinessCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class BusinessOut(BaseModel):
    id: UUID
    name: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProgramCreate(BaseModel):
    businessId: str
    name: str = Field(min_length=1, max_length=200)
    pointsPerDollar: Decimal = Field(default=Decimal("0"), ge=0)
    pointsPerVisit: int = Field(default=0, ge=0)
    firstPurchaseBonus: int = Field(default=0, ge=0)


class ProgramOut(BaseModel):
    id: UUID
    business_id: UUID
    name: str
    status: str

    points_per_dollar: Decimal
    points_per_visit: int
    first_purchase_bonus: int

    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PointsCalculationRequest(BaseModel):
    programId: str
    purchaseAmount: Decimal = Field(ge=0)
    isFirstPurchase: bool = False


class PointsBreakdown(BaseModel):
    dollarPoints: int
    visitPoints: int
    firstPurchaseBonus: int


class PointsCalculationOut(BaseModel):
    programId: str
    purchaseAmount: Decimal
    pointsEarned: int
    breakdown: PointsBreakdown
