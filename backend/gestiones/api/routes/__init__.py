"""API Routes module"""
from fastapi import APIRouter

from .forms import router as forms_router
from .templates import router as templates_router
from .requests import router as requests_router

# Main API router
api_router = APIRouter()

api_router.include_router(forms_router, prefix="/forms", tags=["Forms"])
api_router.include_router(templates_router, prefix="/templates", tags=["Templates"])
api_router.include_router(requests_router, prefix="/requests", tags=["Requests"])

__all__ = ["api_router"]
