"""Deals domain - Deal lifecycle, settlement, history and analytics"""

from .admin_router import router as admin_router
from .router import router

__all__ = ["router", "admin_router"]
