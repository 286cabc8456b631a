"""Orders FastAPI application.

Admin fulfillment API that processes commands synchronously via HTTP.
Each order request is wrapped in the orders domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized once per process at import time. Per-order
# command serialisation is in-process too, so serve with a single worker.
# PROTEAN_ENV selects the protean config overlay.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from orders.domain import orders
from orders.settings import get_settings
from orders.utils.logging import configure_logging
from protean.integrations.fastapi import register_exception_handlers

configure_logging()
orders.init()

# ---------------------------------------------------------------------------
# Route-to-domain mapping
# ---------------------------------------------------------------------------
_ROUTE_DOMAIN_MAP = {
    "/orders": orders,
}


def _resolve_domain(path: str):
    """Return the domain for the given request path, or None."""
    for prefix, domain in _ROUTE_DOMAIN_MAP.items():
        if path.startswith(prefix):
            return domain
    return None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Orders API",
    description="Order fulfillment: status changes, carrier shipments and tracking",
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
    """Push the orders domain context for each order request."""
    domain = _resolve_domain(request.url.path)
    if domain is not None:
        with domain.domain_context():
            response = await call_next(request)
        return response
    # No domain match: pass through
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers and error handlers
# ---------------------------------------------------------------------------
from orders.api import order_router, register_fulfillment_error_handlers, shipping_router  # noqa: E402

app.include_router(order_router)
app.include_router(shipping_router)
register_exception_handlers(app)
register_fulfillment_error_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": orders.name,
            "carrier_adapter": settings.carrier_adapter,
            "mail_adapter": settings.mail_adapter,
        }
    )
