from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.program import BusinessCreate, BusinessOut, ProgramCreate, ProgramOut
from app.services.program_service import create_business, create_program, get_active_program

router = APIRouter(tags=["programs"])


@router.post("/businesses", response_model=BusinessOut)
def add_business(payload: BusinessCreate, db: Session = Depends(get_db)):
    return create_business(db, payload.name)


@router.post("/programs", response_model=ProgramOut)
def add_program(payload: ProgramCreate, db: Session = Depends(get_db)):
    return create_program(
        db,
        business_id=payload.businessId,
        name=payload.name,
        points_per_dollar=payload.pointsPerDollar,
        points_per_visit=payload.pointsPerVisit,
        first_purchase_bonus=payload.firstPurchaseBonus,
    )


@router.get("/programs/{program_id}", response_model=ProgramOut)
def read_program(program_id: str, db: Session = Depends(get_db)):
    return get_active_program(db, program_id)
