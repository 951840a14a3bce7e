import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Index, Integer, String, TIMESTAMP
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func, text

from app.db import Base


class LoyaltyCard(Base):
    __tablename__ = "loyalty_cards"

    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_loyalty_cards_points_non_negative"),
        Index(
            "uq_loyalty_cards_active_customer_program",
            "customer_id",
            "program_id",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(String(100), nullable=False)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id"), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_programs.id"), nullable=False)

    card_number = Column(String(50), nullable=False, unique=True)
    tier = Column(String(20), nullable=False, default="STANDARD")

    # The only balance column. Mutated exclusively by ledger_store.apply_delta.
    points = Column(Integer, nullable=False, default=0)

    active = Column(Boolean, nullable=False, default=True)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
