"""Posts domain - Unlocking posts and the owner's deal outcome toggle"""

from .router import router

__all__ = ["router"]
