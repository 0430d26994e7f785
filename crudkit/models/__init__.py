from .base import AuditMixin, SoftDeleteMixin, TimestampMixin, is_soft_deletable
from .Library import Author, Book, Editor

__all__ = [
    "AuditMixin",
    "SoftDeleteMixin",
    "TimestampMixin",
    "is_soft_deletable",
    "Author",
    "Book",
    "Editor",
]
