"""API module."""

from .learning import router as learning_router
from .whatsapp_webhook import router as whatsapp_router

__all__ = ['learning_router', 'whatsapp_router']
