import uuid
from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db import Base


class ProgramEnrollment(Base):
    __tablename__ = "program_enrollments"

    __table_args__ = (
        UniqueConstraint("customer_id", "program_id", name="uq_program_enrollments_customer_program"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(String(100), nullable=False)
    program_id = Column(UUID(as_uuid=True), ForeignKey("loyalty_programs.id"), nullable=False)
    business_id = Column(UUID(as_uuid=True), ForeignKey("businesses.id"), nullable=False)

    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE / INACTIVE

    # Mirror of loyalty_cards.points, written by the ledger store only.
    points_cache = Column(Integer, nullable=False, default=0)

    enrolled_at = Column(TIMESTAMP, server_default=func.now())
    last_activity_at = Column(TIMESTAMP)
