"""API routes for the Tour Route Optimizer."""

from .routes import router

__all__ = ["router"]
