# carepath/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carepath.config import get_settings
from carepath.intake.errors import (
    IllegalTransitionError,
    IntakeError,
    NoHistoryError,
    PendingOperationError,
    ServiceError,
    ValidationError,
)
from carepath.api.routes import router as api_router
from carepath.api.schemas import ErrorResponse

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Carepath Intake API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # for dev; tighten in prod
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

_STATUS_CODES = {
    ValidationError: 422,
    IllegalTransitionError: 409,
    PendingOperationError: 409,
    NoHistoryError: 409,
    ServiceError: 502,
}


@app.exception_handler(IntakeError)
async def intake_error_handler(request: Request, exc: IntakeError) -> JSONResponse:
    status_code = _STATUS_CODES.get(type(exc), 400)
    body = ErrorResponse(
        error=type(exc).__name__,
        detail=str(exc),
        fields=getattr(exc, "fields", {}),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.get("/")
def root():
    return {"message": "Carepath intake API is running"}


app.include_router(api_router, prefix="/api")
