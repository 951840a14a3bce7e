from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.deps.notifier import get_notifier
from app.schemas.award import AwardRequest, AwardResponse, RedeemRequest
from app.schemas.program import PointsCalculationOut, PointsCalculationRequest
from app.services.award_service import award_points, redeem_points
from app.services.change_notifier import ChangeNotifier
from app.services.program_service import calculate_points, get_active_program

router = APIRouter(prefix="/points", tags=["points"])


@router.post("/award", response_model=AwardResponse, response_model_exclude_none=True)
def award(
    payload: AwardRequest,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    return award_points(db, payload, notifier=notifier)


@router.post("/redeem", response_model=AwardResponse, response_model_exclude_none=True)
def redeem(
    payload: RedeemRequest,
    db: Session = Depends(get_db),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    return redeem_points(db, payload, notifier=notifier)


@router.post("/calculate", response_model=PointsCalculationOut)
def calculate(payload: PointsCalculationRequest, db: Session = Depends(get_db)):
    program = get_active_program(db, payload.programId)
    return calculate_points(program, payload.purchaseAmount, payload.isFirstPurchase)
