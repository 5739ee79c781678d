import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient


@pytest.fixture()
def app():
    from marketplace.api import order_router, payment_router, register_error_handlers
    from marketplace.domain import marketplace

    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        with marketplace.domain_context():
            return await call_next(request)

    app.include_router(order_router)
    app.include_router(payment_router)
    register_error_handlers(app)
    return app


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def auth():
    """Bearer headers for a principal."""
    from marketplace.api.auth import issue_token

    def _headers(principal):
        return {"Authorization": f"Bearer {issue_token(principal.user_id, principal.role.value)}"}

    return _headers
