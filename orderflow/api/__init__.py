"""
HTTP API routers.
"""

from orderflow.api.routes import router

__all__ = ["router"]
