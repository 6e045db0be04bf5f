from .pricing import router

__all__ = ["router"]
