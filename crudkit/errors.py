"""
Exception types raised by the repository helpers.

Two classes of failure are kept apart:

* ``MisuseError`` marks a programming error at the call site (a non-sequence
  where a sequence is required, a value that is not a model, a mixed-type
  batch).  It subclasses ``TypeError`` and is never caught internally.
* ``KeyShapeError`` marks key/value arguments with the wrong shape (wrong
  nesting depth, tuple length not matching the key list).  Callers can
  correct the arguments and retry.

Errors raised by the database (constraint violations, connectivity) are
``sqlalchemy.exc`` exceptions and are propagated unchanged.
"""

from __future__ import annotations


class CrudKitError(Exception):
    """Base class for every error raised by crudkit itself."""


class MisuseError(CrudKitError, TypeError):
    """The caller passed an argument the helpers cannot work with."""


class KeyShapeError(CrudKitError, ValueError):
    """Key values do not match the shape required by the key list."""


__all__ = ["CrudKitError", "MisuseError", "KeyShapeError"]
