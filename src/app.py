"""Stock Ledger FastAPI application.

Processes ledger commands synchronously via HTTP. Every request under
``/ledger`` runs inside the ledger domain context.

Usage (needs the ``server`` extra):
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledger.domain import ledger
from ledger.utils.logging import configure_logging

configure_logging()
ledger.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Stock Ledger API",
    description="Per-warehouse stock levels, reservations, transfers and their audit trail",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the ledger domain context for ledger requests."""
    if request.url.path.startswith("/ledger"):
        with ledger.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from ledger.api import ledger_router, register_ledger_exception_handlers  # noqa: E402

app.include_router(ledger_router)
register_ledger_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"ledger": {"name": ledger.name}}})
