"""API route registrations."""
from fastapi import APIRouter

from insight_proxy.api.routes import insight


api_router = APIRouter()
api_router.include_router(insight.router)

__all__ = ["api_router"]
