from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from finko.core.config import config
from finko.core.db.engine import dispose_engine
from finko.core.error_handler import global_exception_handler
from finko.core.logging_config import configure_logging
from finko.core.middleware.request_id_middleware import RequestIDMiddleware

from finko.modules.bancochile.controller import router as bancochile_router
from finko.modules.bancochile.controller import webhook_router as bancochile_webhook_router
from finko.modules.bank_profiles.controller import router as bank_profiles_router
from finko.modules.gmail.controller import cron_router as gmail_cron_router
from finko.modules.gmail.controller import router as gmail_router
from finko.modules.gmail.controller import webhook_router as gmail_webhook_router
from finko.modules.ledger.controller import (
    expenses_router,
    incomes_router,
    summary_router,
)

configure_logging(config.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


app = FastAPI(
    title="Finko API",
    description="Personal finance tracking with bank transaction import",
    version="1.0.0",
    lifespan=lifespan,
)

# Add global exception handler
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(StarletteHTTPException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)

# Middlewares
app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(expenses_router)
app.include_router(incomes_router)
app.include_router(summary_router)
app.include_router(bancochile_router)
app.include_router(bancochile_webhook_router)
app.include_router(bank_profiles_router)
app.include_router(gmail_router)
app.include_router(gmail_webhook_router)
app.include_router(gmail_cron_router)


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "request_id": str(request.state.request_id)}
