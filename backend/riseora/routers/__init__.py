"""RiseOra - API Routers"""
from .auth import router as auth_router
from .templates import router as templates_router
from .disputes import router as disputes_router
from .notifications import router as notifications_router
from .scheduler import router as scheduler_router

__all__ = [
    "auth_router",
    "templates_router",
    "disputes_router",
    "notifications_router",
    "scheduler_router",
]
