from decimal import ROUND_FLOOR, Decimal

from sqlalchemy.orm import Session

from app.errors import InvalidRequest, ProgramNotFound
from app.models.business import Business
from app.models.loyalty_program import LoyaltyProgram
from app.schemas.program import PointsBreakdown, PointsCalculationOut
from app.services.validators import parse_uuid


def create_business(db: Session, name: str) -> Business:
    business = Business(name=name.strip())
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def create_program(
    db: Session,
    *,
    business_id,
    name: str,
    points_per_dollar: Decimal = Decimal("0"),
    points_per_visit: int = 0,
    first_purchase_bonus: int = 0,
) -> LoyaltyProgram:
    business_id = parse_uuid(business_id, "businessId")
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise InvalidRequest("Business not found")

    program = LoyaltyProgram(
        business_id=business.id,
        name=name.strip(),
        status="ACTIVE",
        points_per_dollar=points_per_dollar,
        points_per_visit=points_per_visit,
        first_purchase_bonus=first_purchase_bonus,
    )
    db.add(program)
    db.commit()
    db.refresh(program)
    return program


def get_active_program(db: Session, program_id) -> LoyaltyProgram:
    program_id = parse_uuid(program_id, "programId")
    program = (
        db.query(LoyaltyProgram)
        .filter(LoyaltyProgram.id == program_id)
        .filter(LoyaltyProgram.status == "ACTIVE")
        .first()
    )
    if not program:
        raise ProgramNotFound(program_id=str(program_id))
    return program


def calculate_points(program: LoyaltyProgram, purchase_amount: Decimal, is_first_purchase: bool = False) -> PointsCalculationOut:
    """Points a purchase would earn. Read-only: nothing is credited here."""
    amount = Decimal(purchase_amount)
    rate = Decimal(program.points_per_dollar or 0)

    dollar_points = 0
    if rate > 0:
        dollar_points = int((amount * rate).to_integral_value(rounding=ROUND_FLOOR))

    visit_points = int(program.points_per_visit or 0)
    first_purchase_bonus = int(program.first_purchase_bonus or 0) if is_first_purchase else 0

    return PointsCalculationOut(
        programId=str(program.id),
        purchaseAmount=amount,
        pointsEarned=dollar_points + visit_points + first_purchase_bonus,
        breakdown=PointsBreakdown(
            dollarPoints=dollar_points,
            visitPoints=visit_points,
            firstPurchaseBonus=first_purchase_bonus,
        ),
    )
