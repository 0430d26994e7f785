from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper, RelationshipProperty

from crudkit.errors import KeyShapeError, MisuseError
from crudkit.utils.model_utils.naming import resolve_property

_TEXT_TYPES = (str, bytes, bytearray)


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, _TEXT_TYPES)


def assert_sequence(value: Any) -> None:
    if not is_sequence(value):
        raise MisuseError("value must be a kind of sequence")


def assert_single_dimension(value: Any) -> None:
    assert_sequence(value)
    if any(is_sequence(item) for item in value):
        raise KeyShapeError("value must be a single dimension sequence")


def assert_two_dimension(value: Any) -> None:
    assert_sequence(value)
    for row in value:
        if not is_sequence(row) or any(is_sequence(item) for item in row):
            raise KeyShapeError("value must be a 2 dimension sequence")


def _mapper_of(template: Any) -> Mapper | None:
    try:
        inspected = sa_inspect(template)
    except NoInspectionAvailable:
        return None
    return inspected if isinstance(inspected, Mapper) else getattr(inspected, "mapper", None)


def resolve_model_class(template: Any) -> Type:
    """
    Return the mapped class behind ``template`` (a mapped class or an instance).
    """

    mapper = _mapper_of(template)
    if mapper is None:
        raise MisuseError("model must be a mapped class or an instance of one")
    return mapper.class_


def coerce_instance(model_cls: Type, value: Any) -> Any:
    """
    Normalise ``value`` to an instance of ``model_cls``.

    Instances pass through untouched so that generated keys land on the
    caller's object.  Mappings are copied into a fresh instance; relationship
    entries given as mappings (or sequences of mappings) are converted to
    instances of the related class.
    """

    if isinstance(value, model_cls):
        return value
    if not isinstance(value, Mapping):
        raise MisuseError(f"model must be a mapping or an instance of {model_cls.__name__}")

    attributes = {}
    for field, item in value.items():
        prop = resolve_property(model_cls, field)
        rel = prop if isinstance(prop, RelationshipProperty) else None
        if rel is not None and item is not None:
            related_cls = rel.mapper.class_
            if rel.uselist:
                assert_sequence(item)
                item = [coerce_instance(related_cls, element) for element in item]
            else:
                item = coerce_instance(related_cls, item)
        attributes[prop.key] = item
    return model_cls(**attributes)
