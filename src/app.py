"""Stockroom FastAPI application.

Single-domain web server that processes commands synchronously via HTTP.
Each request runs inside the stockroom domain context with the tenant id
bound to the structlog context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from stockroom/domain.toml.
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockroom.domain import stockroom
from stockroom.utils.logging import add_context, clear_context, configure_logging

configure_logging(log_dir=os.getenv("LOG_DIR", "logs"))
stockroom.init()

_TENANT_PREFIX = "/tenants/"


def _tenant_from_path(path: str) -> str | None:
    """Return the tenant id segment of ``/tenants/{tenant_id}/...``, or None."""
    if not path.startswith(_TENANT_PREFIX):
        return None
    return path[len(_TENANT_PREFIX) :].split("/", 1)[0] or None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Stockroom API",
    description="Order-to-inventory reconciliation: purchasing, receiving, stock ledger and sales fulfillment",
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
    """Push the stockroom domain context and bind the tenant for log lines."""
    tenant_id = _tenant_from_path(request.url.path)
    if tenant_id is None:
        # Health check, docs, etc.
        return await call_next(request)

    add_context(tenant_id=tenant_id)
    try:
        with stockroom.domain_context():
            response = await call_next(request)
    finally:
        clear_context()
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from stockroom.api import (  # noqa: E402
    company_router,
    customer_router,
    movement_router,
    product_router,
    purchase_order_router,
    receipt_router,
    sales_order_router,
)
from stockroom.api.errors import register_exception_handlers  # noqa: E402

app.include_router(product_router)
app.include_router(company_router)
app.include_router(customer_router)
app.include_router(movement_router)
app.include_router(purchase_order_router)
app.include_router(receipt_router)
app.include_router(sales_order_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"stockroom": {"name": stockroom.name}}})
