"""Master API router."""

from fastapi import APIRouter

from coar_exchange.api.routes import health, inbox

api_router = APIRouter()
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(inbox.router)
