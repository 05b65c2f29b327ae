# HTTP transport for the star registry
from .routes import router

__all__ = ["router"]
