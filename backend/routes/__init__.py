from .comments import router as comments_router
from .sessions import router as sessions_router

__all__ = ["comments_router", "sessions_router"]
