from .context_service import ContextService, build_context_service

__all__ = ["ContextService", "build_context_service"]
