"""ArtisanMart FastAPI application.

Orders and payments for the multi-vendor marketplace. Commands are
processed synchronously; every request under /orders or /payments runs
inside the marketplace domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketplace.api import order_router, payment_router, register_error_handlers
from marketplace.config import get_settings
from marketplace.domain import marketplace

# PROTEAN_ENV selects the domain.toml overlay (e.g. "production" -> PostgreSQL)
marketplace.init()

_DOMAIN_PREFIXES = ("/orders", "/payments")

app = FastAPI(
    title=f"{get_settings().STORE_NAME} API",
    description="Multi-vendor marketplace: orders, fulfilment and payments",
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
    """Push the marketplace domain context for API requests."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with marketplace.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs
    return await call_next(request)


app.include_router(order_router)
app.include_router(payment_router)
register_error_handlers(app)


@app.get("/health")
async def health():
    settings = get_settings()
    return JSONResponse(
        content={
            "status": "ok",
            "domain": marketplace.name,
            "environment": settings.PROTEAN_ENV,
            "payment_gateway": settings.PAYMENT_GATEWAY,
        }
    )
