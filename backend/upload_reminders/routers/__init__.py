"""Upload Reminder Engine - API Routers"""
from .upload_patterns import router as upload_patterns_router
from .scheduler import router as scheduler_router

__all__ = [
    "upload_patterns_router",
    "scheduler_router",
]
