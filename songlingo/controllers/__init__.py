"""FastAPI routers acting as controllers."""

from . import pronunciation

__all__ = ["pronunciation"]
