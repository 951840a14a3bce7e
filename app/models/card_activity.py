import uuid
from sqlalchemy import Column, ForeignKey, Integer, String, Text, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class CardActivity(Base):
    __tablename__ = "card_activities"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    card_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_cards.id"), nullable=False, index=True)

    activity_type = Column(String(20), nullable=False)  # EARN / REDEEM / ADJUST
    source_type = Column(String(20), nullable=False)  # SCAN / MANUAL / PROMO / ADJUSTMENT / REDEMPTION

    points = Column(Integer, nullable=False)
    description = Column(Text)

    # Globally unique: one logical event, one row.
    idempotency_key = Column(String(150), nullable=False, unique=True)

    balance_after = Column(Integer, nullable=False)

    created_at = Column(TIMESTAMP, server_default=func.now())
