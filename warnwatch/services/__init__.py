from .query import QueryService

__all__ = ["QueryService"]
