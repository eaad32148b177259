"""HTTP routers for the transfer service."""

from .transfers import router as transfers_router

__all__ = ["transfers_router"]
