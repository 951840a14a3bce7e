from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db import get_db
from app.schemas.enrollment import EnrollmentCreate, EnrollmentOut
from app.services.enrollment_service import deactivate_enrollment, enroll_customer

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post("", response_model=EnrollmentOut)
def create_enrollment(payload: EnrollmentCreate, db: Session = Depends(get_db)):
    return enroll_customer(db, payload.customerId, payload.programId)


@router.post("/deactivate", response_model=EnrollmentOut)
def deactivate(payload: EnrollmentCreate, db: Session = Depends(get_db)):
    return deactivate_enrollment(db, payload.customerId, payload.programId)
