import uuid

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db import Base


class LoyaltyProgram(Base):
    __tablename__ = "loyalty_programs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE / INACTIVE

    points_per_dollar = Column(Numeric(10, 2), nullable=False, default=0)
    points_per_visit = Column(Integer, nullable=False, default=0)
    first_purchase_bonus = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    business = relationship("Business")
