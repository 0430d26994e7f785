from .query_option_schema import QueryOptionSchema

__all__ = ["QueryOptionSchema"]
