"""Bank Reconciliation Engine - Main Application."""

import logging.config

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.routes import reconciliation, reports, rules
from app.core.config import settings
from app.core.database import Base, engine
from app.core.errors import ReconciliationError
from app.core.logging import setup_logging
from app.core.logging_config import LOGGING_CONFIG

# Configure logging before anything else
logging.config.dictConfig(LOGGING_CONFIG)
logger = setup_logging(settings.log_level)

# Create all tables on startup
logger.info("Creating database tables...")
Base.metadata.create_all(bind=engine)
logger.info("Database tables ready")

# -- OpenAPI tag metadata for Swagger grouping --
tags_metadata = [
    {
        "name": "Health",
        "description": "Service health and readiness checks.",
    },
    {
        "name": "Reconciliation",
        "description": (
            "Import bank transactions, auto-match them against expected "
            "payments, and resolve the rest by hand: match, unmatch or "
            "write off."
        ),
    },
    {
        "name": "Rules",
        "description": (
            "Owner-defined matching rules: description / amount / payer "
            "conditions, evaluated in ascending priority."
        ),
    },
    {
        "name": "Reports",
        "description": (
            "Reconciliation summary, overdue payments with no deposit, and "
            "period reports with variance against expected payments."
        ),
    },
]


app = FastAPI(
    title="Bank Reconciliation Engine",
    description=(
        "## Bank Transaction Reconciliation API\n\n"
        "Matches imported bank transactions against the rent and fee "
        "payments a property owner expects to receive.\n\n"
        "### Matching tiers\n"
        "| Tier | Criteria | Confidence |\n"
        "|------|----------|------------|\n"
        "| **exact** | amount within 0.01, due within 7 days | 100 |\n"
        "| **rule** | first active auto-match rule whose conditions hold | 50-100 |\n"
        "| **fuzzy** | amount within 5%, due within 14 days | 30-80 |\n\n"
        "Matches at confidence 80 or above are applied automatically; "
        "only confidence 100 counts as `matched`, the rest are "
        "`partial_match`.\n\n"
        "### Discrepancy Types\n"
        "- `amount_mismatch` - Deposit differs from the expected amount\n"
        "- `date_mismatch` - Deposit posted 14+ days from the due date\n"
        "- `unexpected` - Deposit with no expected payment, or written off\n"
        "- `missing_payment`, `duplicate`, `partial_payment` - Reported types\n\n"
        "All endpoints except `/health` require the caller id in the "
        "`X-User-Id` header.\n"
    ),
    version="1.0.0",
    openapi_tags=tags_metadata,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(
    request: Request, exc: ReconciliationError
) -> JSONResponse:
    logger.info(
        "%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            },
        },
    )


app.include_router(
    reconciliation.router, prefix="/api/v1/reconciliation", tags=["Reconciliation"]
)
app.include_router(rules.router, prefix="/api/v1/reconciliation", tags=["Rules"])
app.include_router(reports.router, prefix="/api/v1/reconciliation", tags=["Reports"])

logger.info(
    "Bank Reconciliation Engine API ready (env=%s) - routes registered",
    settings.app_env,
)


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint.

    Returns a simple JSON object confirming the service is running.
    Useful for load balancers and monitoring systems.
    """
    return {"status": "healthy", "service": "bank-reconciliation-engine"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.app_port)
