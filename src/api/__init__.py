"""HTTP API routers"""
from .export import router as export_router

__all__ = ["export_router"]
