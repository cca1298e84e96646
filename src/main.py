import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv
from alembic.config import Config
from alembic import command

from src.api.routes import cashout, reconciliation
from src.settlement_engine.services.errors import (
    AlreadyReversed,
    DuplicateSubmission,
    InsufficientBalance,
    InvalidTransition,
    LimitExceeded,
    NotFound,
    PersistenceFailure,
    SettlementError,
    ValidationError,
)

# Load environment variables
load_dotenv()

logger = logging.getLogger("venue_settlement.api")

origins = [origin for origin in [os.getenv("FRONTEND_BASE_URL")] if origin]

# Most specific class first; LimitExceeded is also a ValidationError.
ERROR_STATUS_CODES = [
    (LimitExceeded, 422),
    (ValidationError, 400),
    (InsufficientBalance, 409),
    (DuplicateSubmission, 409),
    (AlreadyReversed, 409),
    (InvalidTransition, 409),
    (NotFound, 404),
    (PersistenceFailure, 503),
]

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def status_code_for(exc: SettlementError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.get("/")
def read_root():
    return {"message": "Venue settlement API"}

# DATABASE ROUTES --------------------------------------------------------------------------------------
app.include_router(cashout.router)
app.include_router(reconciliation.router)


# DB Start up after deploying
@app.on_event("startup")
async def run_migrations():
    if os.getenv("RUN_MIGRATIONS_ON_STARTUP", "true").lower() != "true":
        return
    alembic_cfg = Config("alembic.ini")
    command.upgrade(alembic_cfg, "head")
