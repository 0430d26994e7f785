"""
Dialect-aware ``INSERT`` statements with primary-key conflict handling.

``update_columns`` selects the behaviour when the row's primary key exists:

* ``None``: plain insert, the conflict surfaces as ``IntegrityError``
* empty tuple: the insert is skipped (insert-or-ignore)
* column names: only those columns are overwritten with the new values
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple, Type

from sqlalchemy import Table, insert as sa_insert
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.orm import Session

from crudkit.errors import MisuseError
from crudkit.utils.model_utils.naming import resolve_column
from crudkit.utils.model_utils.options import QueryOption

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def dialect_name(session: Session, table: Table) -> str:
    return session.get_bind(clause=table).dialect.name


def build_insert(
    session: Session,
    table: Table,
    values: Dict[str, Any],
    update_columns: Optional[Sequence[str]] = None,
):
    if update_columns is None:
        return sa_insert(table).values(**values)

    name = dialect_name(session, table)
    insert_factory = _DIALECT_INSERTS.get(name)
    if insert_factory is None:
        raise MisuseError(f"conflict handling is not supported for dialect {name!r}")

    pk_names = [column.name for column in table.primary_key.columns]
    stmt = insert_factory(table).values(**values)

    if name in ("mysql", "mariadb"):
        # Re-assigning the key to itself turns the conflict into a no-op.
        targets = list(update_columns) or pk_names[:1]
        return stmt.on_duplicate_key_update({column: stmt.inserted[column] for column in targets})

    if not update_columns:
        return stmt.on_conflict_do_nothing(index_elements=pk_names)
    return stmt.on_conflict_do_update(
        index_elements=pk_names,
        set_={column: stmt.excluded[column] for column in update_columns},
    )


def resolve_column_names(model_cls: Type, fields: Sequence[str]) -> Tuple[str, ...]:
    names = []
    for field in fields:
        column = resolve_column(model_cls, field).columns[0]
        if column.name not in names:
            names.append(column.name)
    return tuple(names)


def conflict_columns_for(
    option: QueryOption,
    model_cls: Type,
    default: Optional[Sequence[str]] = None,
) -> Optional[Tuple[str, ...]]:
    """Columns to update when inserting ``model_cls`` conflicts, per ``option``."""

    listed = option.conflict_columns(model_cls.__name__)
    if listed is None:
        return tuple(default) if default is not None else None
    return resolve_column_names(model_cls, listed)
