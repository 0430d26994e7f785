"""
Generic CRUD helpers for SQLAlchemy models.  ``Repository`` wraps one mapped
class; the remaining modules hold the building blocks it is made of (field
name resolution, shape checks, key conditions, conflict-aware inserts and
audit column stamping) so callers can use them on their own.
"""

from . import base  # re-export to make base helpers discoverable.
from .audit_columns import AuditOption, clear_audit_identity, set_audit_identity
from .conflict import build_insert
from .options import DEFAULT_OPTION, QueryOption
from .repository import Repository
from .shapes import assert_sequence, assert_single_dimension, assert_two_dimension
from .where import build_where_by_keys, describe_where

__all__ = [
    "AuditOption",
    "DEFAULT_OPTION",
    "QueryOption",
    "Repository",
    "assert_sequence",
    "assert_single_dimension",
    "assert_two_dimension",
    "build_insert",
    "build_where_by_keys",
    "clear_audit_identity",
    "describe_where",
    "set_audit_identity",
]
