import os

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tripsplit.database import init_db
from tripsplit.logging_config import setup_logging
from tripsplit.middleware import RequestLoggingMiddleware
from tripsplit.ratelimit import limiter
from tripsplit.routes import currency, expenses
from tripsplit.settlement import InvalidExpenseError

load_dotenv()

# Sentry
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        send_default_pii=False,
    )

logger = setup_logging()


def _invalid_expense_handler(request: Request, exc: InvalidExpenseError) -> JSONResponse:
    logger.warning(
        "Invalid expense data",
        extra={"extra_data": {"path": request.url.path, "error": str(exc)}},
    )
    return JSONResponse(status_code=422, content={"detail": str(exc)})


app = FastAPI(title="Tripsplit API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(InvalidExpenseError, _invalid_expense_handler)

# CORS
origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)

# Create tables (use Alembic in production)
init_db()

# Routes
app.include_router(expenses.router, prefix="/api")
app.include_router(currency.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "ok"}
