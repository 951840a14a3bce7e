import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.db import engine, Base
from app.errors import LedgerError
from app.logging_config import setup_logging

from app.models.business import Business
from app.models.loyalty_program import LoyaltyProgram
from app.models.enrollment import ProgramEnrollment
from app.models.loyalty_card import LoyaltyCard
from app.models.card_activity import CardActivity

from app.routes.points import router as points_router
from app.routes.cards import router as cards_router
from app.routes.enrollments import router as enrollments_router
from app.routes.programs import router as programs_router

logger = logging.getLogger(__name__)

app = FastAPI(title="Loyalty Card Ledger")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_allow_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    if exc.status_code >= 500:
        logger.error(
            "ledger request failed %s %s",
            request.url.path,
            exc.code,
            extra=exc.context,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.code, "message": exc.public_message},
    )


@app.on_event("startup")
def startup():
    setup_logging()
    Base.metadata.create_all(bind=engine)


app.include_router(points_router)
app.include_router(cards_router)
app.include_router(enrollments_router)
app.include_router(programs_router)


@app.get("/")
def read_root():
    return {"message": "Loyalty Card Ledger is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001)
