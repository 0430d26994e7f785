from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


def _as_tuple(value: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


@dataclass(frozen=True)
class QueryOption:
    """
    Caller-supplied selector shared by every repository operation.

    ``keys`` lists the fields identifying rows for keyed operations (empty
    means the ``id`` column).  ``selected_fields`` restricts the columns and
    relationships an operation touches; ``omitted_fields`` excludes some.
    When both are given the omitted names are removed from the selection.
    ``preloaded_fields`` holds relation paths to eager-load on reads
    (``"Books"``, ``"Books.Editor"``, ``"Books.Title"``).
    ``updates_on_conflict`` maps a model class name to the columns updated
    when inserting a row of that class hits an existing primary key.
    ``hard_delete`` removes rows instead of stamping ``deleted_at``;
    ``include_deleted`` lets reads see soft-deleted rows.
    """

    keys: Tuple[str, ...] = ()
    selected_fields: Tuple[str, ...] = ()
    omitted_fields: Tuple[str, ...] = ()
    preloaded_fields: Tuple[str, ...] = ()
    updates_on_conflict: Mapping[str, Tuple[str, ...]] = field(default_factory=dict, hash=False)
    hard_delete: bool = False
    include_deleted: bool = False

    def __post_init__(self) -> None:
        for name in ("keys", "selected_fields", "omitted_fields", "preloaded_fields"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        conflicts = {
            str(entity): _as_tuple(columns)
            for entity, columns in (self.updates_on_conflict or {}).items()
        }
        object.__setattr__(self, "updates_on_conflict", MappingProxyType(conflicts))

    def conflict_columns(self, entity_name: str) -> Optional[Tuple[str, ...]]:
        """Columns to update on conflict for ``entity_name``, or ``None`` if unlisted."""

        return self.updates_on_conflict.get(entity_name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryOption":
        from crudkit.schemas.query_option_schema import QueryOptionSchema

        return QueryOptionSchema().load(data)

    def to_dict(self) -> Dict[str, Any]:
        from crudkit.schemas.query_option_schema import QueryOptionSchema

        return QueryOptionSchema().dump(self)


DEFAULT_OPTION = QueryOption()
