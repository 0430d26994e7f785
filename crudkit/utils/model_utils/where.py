"""
Turn key lists and key values into SQL conditions.

``keys`` names the columns identifying a row; ``values`` holds one entry per
row to match.  The key count decides the accepted value shape:

* no keys: the ``id`` column, one scalar per row (``[1, 2, 3]``)
* one key: one scalar per row, either flat (``["a", "b"]``) or as 1-tuples
  (``[["a"], ["b"]]``)
* two or more keys: one tuple per row, each as long as ``keys``
  (``[(1, "a"), (2, "b")]``)

One and zero keys compile to ``col IN (...)`` with a single expanding
parameter.  Composite keys compile to ``(c1 = ? AND c2 = ?) OR (...)`` so the
clause runs on engines without row-value ``IN`` support.
"""

from __future__ import annotations

import re
from typing import Any, List, Sequence, Tuple, Type

from sqlalchemy import and_, false, or_
from sqlalchemy.sql.elements import ColumnElement

from crudkit.errors import KeyShapeError
from crudkit.utils.logging_utils import get_logger
from crudkit.utils.model_utils.naming import resolve_column
from crudkit.utils.model_utils.shapes import (
    assert_sequence,
    assert_single_dimension,
    assert_two_dimension,
    is_sequence,
)

IMPLICIT_KEY = "id"

_PLACEHOLDER = re.compile(r"__\[POSTCOMPILE_(\w+)\]|:(\w+)")


def _key_attribute(model_cls: Type, key: str):
    prop = resolve_column(model_cls, key)
    return getattr(model_cls, prop.key)


def _check_row_length(row: Sequence[Any], key_length: int) -> None:
    if len(row) != key_length:
        raise KeyShapeError(
            f"key length {key_length} requires value length {key_length}, got {len(row)}"
        )


def build_where_by_keys(model_cls: Type, values: Any, keys: Sequence[str] = ()) -> ColumnElement:
    """Build the condition matching every row identified by ``values``."""

    keys = tuple(keys or ())
    logger = get_logger("where")

    if not keys:
        assert_single_dimension(values)
        clause = _key_attribute(model_cls, IMPLICIT_KEY).in_(list(values))
    elif len(keys) == 1:
        assert_sequence(values)
        if any(is_sequence(row) for row in values):
            assert_two_dimension(values)
            scalars = []
            for row in values:
                _check_row_length(row, 1)
                scalars.append(row[0])
        else:
            scalars = list(values)
        clause = _key_attribute(model_cls, keys[0]).in_(scalars)
    else:
        assert_two_dimension(values)
        columns = [_key_attribute(model_cls, key) for key in keys]
        conditions = []
        for row in values:
            _check_row_length(row, len(columns))
            conditions.append(
                and_(*(column == value for column, value in zip(columns, row))).self_group()
            )
        clause = or_(*conditions) if conditions else false()

    logger.debug(
        "Built key condition model=%s keys=%s rows=%s",
        model_cls.__name__,
        list(keys) or [IMPLICIT_KEY],
        len(values),
    )
    return clause


def describe_where(clause: ColumnElement) -> Tuple[str, List[Any]]:
    """
    Render ``clause`` as ``(sql_text, arguments)`` with ``?`` placeholders.

    Expanding ``IN`` parameters appear as a single placeholder whose argument
    is the full value list.
    """

    compiled = clause.compile()
    params = compiled.params
    arguments: List[Any] = []

    def _replace(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        arguments.append(params[name])
        return "?"

    text = _PLACEHOLDER.sub(_replace, str(compiled))
    return text, arguments
