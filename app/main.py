# app/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings as config
from app.core.exceptions import LedgerError
from app.core.logging_config import setup_logging

# Registers every mapped class on Base.metadata
from app.models import event, promotion, transaction, user  # noqa: F401
from app.routers import events, promotions, transactions, users

logger = logging.getLogger(__name__)


async def ledger_exception_handler(request: Request, exc: LedgerError):
    """Business-rule violations raised by the services become their mapped status."""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")
    yield
    logger.info("Application shutting down.")


app = FastAPI(
    title="Points Ledger Service",
    description="Loyalty points: purchases, redemptions, transfers, adjustments, events and promotions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(LedgerError, ledger_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])
app.include_router(promotions.router, prefix="/promotions", tags=["Promotions"])
app.include_router(events.router, prefix="/events", tags=["Events"])
