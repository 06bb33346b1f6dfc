import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tradeledger.api.routes.ledger import router as ledger_router
from tradeledger.api.routes.reports import router as reports_router
from tradeledger.core.config import settings
from tradeledger.core.errors import StoreUnavailableError, ValidationFailure
from tradeledger.db.database import engine

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info("Starting %s", settings.app_name)
    try:
        yield
    finally:
        engine.dispose()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(ledger_router)
app.include_router(reports_router)


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(_: Request, exc: ValidationFailure):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "retryable": exc.retryable},
    )


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(_: Request, exc: StoreUnavailableError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "retryable": exc.retryable},
        headers={"Retry-After": str(settings.retry_after_seconds)},
    )


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}
