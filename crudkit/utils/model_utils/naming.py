"""
Field-name resolution against SQLAlchemy mappers.

Callers refer to fields by logical name, in whatever case they like
(``"ContactNumber"``, ``"contact_number"``, ``"ID"``).  Names are normalised to
snake_case lower-case column names and then matched against the mapper's
attribute keys and physical column names.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Tuple, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import ColumnProperty, Mapper, MapperProperty, RelationshipProperty

from crudkit.errors import MisuseError

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")


def column_name(field: str) -> str:
    """Convert a logical field name into its physical column name."""

    name = field.strip()
    name = _ACRONYM_BOUNDARY.sub(r"\1_\2", name)
    name = _WORD_BOUNDARY.sub(r"\1_\2", name)
    return name.lower()


def mapper_for(model_cls: Type) -> Mapper:
    return sa_inspect(model_cls)


def _lookup_table(mapper: Mapper) -> Dict[str, MapperProperty]:
    table: Dict[str, MapperProperty] = {}
    for prop in mapper.attrs:
        table.setdefault(prop.key.lower(), prop)
        if isinstance(prop, ColumnProperty):
            for column in prop.columns:
                if getattr(column, "name", None):
                    table.setdefault(column.name.lower(), prop)
    return table


def resolve_property(model_cls: Type, field: str) -> MapperProperty:
    mapper = mapper_for(model_cls)
    table = _lookup_table(mapper)
    for candidate in (field.strip().lower(), column_name(field)):
        prop = table.get(candidate)
        if prop is not None:
            return prop
    raise MisuseError(f"{mapper.class_.__name__} has no field {field!r}")


def resolve_column(model_cls: Type, field: str) -> ColumnProperty:
    prop = resolve_property(model_cls, field)
    if not isinstance(prop, ColumnProperty):
        raise MisuseError(f"{model_cls.__name__}.{prop.key} is not a column")
    return prop


def resolve_relationship(model_cls: Type, field: str) -> RelationshipProperty:
    prop = resolve_property(model_cls, field)
    if not isinstance(prop, RelationshipProperty):
        raise MisuseError(f"{model_cls.__name__}.{prop.key} is not a relationship")
    return prop


def split_fields(model_cls: Type, fields: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Partition ``fields`` into (column keys, relationship keys), keeping order."""

    columns: List[str] = []
    relationships: List[str] = []
    for field in fields:
        prop = resolve_property(model_cls, field)
        target = relationships if isinstance(prop, RelationshipProperty) else columns
        if prop.key not in target:
            target.append(prop.key)
    return columns, relationships


def column_keys(model_cls: Type) -> List[str]:
    return [prop.key for prop in mapper_for(model_cls).column_attrs]


def primary_key_keys(model_cls: Type) -> List[str]:
    mapper = mapper_for(model_cls)
    return [mapper.get_property_by_column(column).key for column in mapper.primary_key]
