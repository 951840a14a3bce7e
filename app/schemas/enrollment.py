from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel


class EnrollmentCreate(BaseModel):
    customerId: str
    programId: str


class EnrollmentOut(BaseModel):
    id: UUID
    customer_id: str
    program_id: UUID
    business_id: UUID

    status: str
    points_cache: int

    enrolled_at: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None

    class Config:
        from_attributes = True
