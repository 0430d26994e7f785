"""
Generic repository over one mapped class.

``Repository(Author)`` exposes create / update / upsert / delete / updates /
get.  Every operation takes a ``QueryOption`` selecting the fields it touches
and runs against ``db.session`` unless another session is passed.  Writes are
committed by default; pass ``commit=False`` to keep them inside a transaction
owned by the caller.

Writes go through Core statements instead of the unit of work, so the
selector decides exactly which columns and associations reach the database:

* many-to-one targets are inserted first (insert-or-ignore) and their keys
  copied onto the owner;
* the row itself is inserted with the conflict rule for its class;
* one-to-many children get the owner's key and are inserted afterwards; on a
  primary-key conflict only their foreign key is updated unless
  ``updates_on_conflict`` lists other columns for the child class.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Set, Tuple, Type, TypeVar

from sqlalchemy import delete as sa_delete, inspect as sa_inspect, select, update as sa_update
from sqlalchemy.orm import (
    MANYTOONE,
    ONETOMANY,
    RelationshipProperty,
    Session,
    defer,
    load_only,
    selectinload,
    with_loader_criteria,
)

from crudkit.errors import MisuseError
from crudkit.models.base import SoftDeleteMixin, is_soft_deletable, utcnow
from crudkit.utils.logging_utils import get_logger, log_context
from crudkit.utils.model_utils.audit_columns import apply_insert_audit, apply_update_audit
from crudkit.utils.model_utils.base import (
    _build_context,
    _emit_audit,
    _instance_identity,
    _resolve_session,
    _sanitize_payload,
)
from crudkit.utils.model_utils.conflict import build_insert, conflict_columns_for, resolve_column_names
from crudkit.utils.model_utils.naming import (
    column_keys,
    primary_key_keys,
    resolve_property,
    split_fields,
)
from crudkit.utils.model_utils.options import DEFAULT_OPTION, QueryOption
from crudkit.utils.model_utils.shapes import coerce_instance, is_sequence, resolve_model_class
from crudkit.utils.model_utils.where import build_where_by_keys, describe_where

ModelType = TypeVar("ModelType")


@dataclass(frozen=True)
class FieldPlan:
    """Column and relationship keys an operation may write."""

    columns: Tuple[str, ...]
    relationships: Tuple[str, ...]
    explicit: bool = False


def plan_fields(
    model_cls: Type,
    selected: Sequence[str] = (),
    omitted: Sequence[str] = (),
) -> FieldPlan:
    mapper = sa_inspect(model_cls)
    omitted_columns, omitted_relationships = split_fields(model_cls, omitted)
    if selected:
        columns, relationships = split_fields(model_cls, selected)
    else:
        columns = column_keys(model_cls)
        relationships = [rel.key for rel in mapper.relationships if not rel.viewonly]
    return FieldPlan(
        columns=tuple(key for key in columns if key not in omitted_columns),
        relationships=tuple(key for key in relationships if key not in omitted_relationships),
        explicit=bool(selected),
    )


def _key_of(mapper, column) -> str:
    return mapper.get_property_by_column(column).key


class Repository(Generic[ModelType]):
    def __init__(self, model: Any) -> None:
        self.model: Type[ModelType] = resolve_model_class(model)
        self.mapper = sa_inspect(self.model)

    def __repr__(self) -> str:
        return f"Repository({self.model.__name__})"

    def new_collection(self) -> List[ModelType]:
        return []

    # ------------------------------------------------------------------
    # Graph saving
    # ------------------------------------------------------------------

    def _insert_row(
        self,
        session: Session,
        instance: Any,
        model_cls: Type,
        columns: Sequence[str],
        update_columns: Optional[Sequence[str]],
    ) -> None:
        mapper = sa_inspect(model_cls)
        table = mapper.local_table
        state_dict = sa_inspect(instance).dict

        values: Dict[str, Any] = {}
        for key in columns:
            if key not in state_dict:
                continue
            column = mapper.attrs[key].columns[0]
            value = state_dict[key]
            if value is None and (
                column.primary_key or column.default is not None or column.server_default is not None
            ):
                continue
            values[column.key] = value
        apply_insert_audit(session, table, values)

        result = session.execute(build_insert(session, table, values, update_columns))

        pk_keys = primary_key_keys(model_cls)
        if any(getattr(instance, key) is None for key in pk_keys):
            generated = result.inserted_primary_key or ()
            for key, value in zip(pk_keys, generated):
                if value is not None and getattr(instance, key) is None:
                    setattr(instance, key, value)

    def _save_parents(
        self,
        session: Session,
        instance: Any,
        model_cls: Type,
        plan: FieldPlan,
        option: QueryOption,
        visited: Set[int],
    ) -> List[str]:
        """Save many-to-one targets and copy their keys; return the keys set."""

        mapper = sa_inspect(model_cls)
        state_dict = sa_inspect(instance).dict
        assigned: List[str] = []
        for rel_key in plan.relationships:
            rel: RelationshipProperty = mapper.relationships[rel_key]
            if rel.direction is not MANYTOONE or rel.viewonly:
                continue
            target = state_dict.get(rel_key)
            if target is None:
                continue
            target_cls = rel.mapper.class_
            self._save_graph(
                session,
                target,
                target_cls,
                plan_fields(target_cls),
                conflict_columns_for(option, target_cls, default=()),
                option,
                visited,
            )
            for local, remote in rel.local_remote_pairs:
                local_key = _key_of(mapper, local)
                setattr(instance, local_key, getattr(target, _key_of(rel.mapper, remote)))
                assigned.append(local_key)
        return assigned

    def _save_children(
        self,
        session: Session,
        instance: Any,
        model_cls: Type,
        plan: FieldPlan,
        option: QueryOption,
        visited: Set[int],
    ) -> None:
        mapper = sa_inspect(model_cls)
        state_dict = sa_inspect(instance).dict
        for rel_key in plan.relationships:
            rel: RelationshipProperty = mapper.relationships[rel_key]
            if rel.viewonly:
                continue
            if rel.direction is not ONETOMANY:
                if rel.direction is not MANYTOONE:
                    get_logger("repository").debug(
                        "Skipping %s.%s; only one-to-many and many-to-one associations are saved",
                        model_cls.__name__,
                        rel_key,
                    )
                continue
            children = state_dict.get(rel_key)
            if children is None:
                continue
            items = list(children) if rel.uselist else [children]
            child_cls = rel.mapper.class_
            foreign_key_names = [remote.name for _, remote in rel.local_remote_pairs]
            for child in items:
                for local, remote in rel.local_remote_pairs:
                    setattr(child, _key_of(rel.mapper, remote), getattr(instance, _key_of(mapper, local)))
                self._save_graph(
                    session,
                    child,
                    child_cls,
                    plan_fields(child_cls),
                    conflict_columns_for(option, child_cls, default=foreign_key_names),
                    option,
                    visited,
                )

    def _save_graph(
        self,
        session: Session,
        instance: Any,
        model_cls: Type,
        plan: FieldPlan,
        update_columns: Optional[Sequence[str]],
        option: QueryOption,
        visited: Set[int],
    ) -> None:
        if id(instance) in visited:
            return
        visited.add(id(instance))

        assigned = self._save_parents(session, instance, model_cls, plan, option, visited)
        columns = list(plan.columns) + [key for key in assigned if key not in plan.columns]
        self._insert_row(session, instance, model_cls, columns, update_columns)
        self._save_children(session, instance, model_cls, plan, option, visited)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _primary_key_filter(self, instance: Any) -> list:
        pk_keys = primary_key_keys(self.model)
        values = [getattr(instance, key) for key in pk_keys]
        if any(value is None for value in values):
            raise MisuseError(f"update requires primary key values on {self.model.__name__}")
        return [getattr(self.model, key) == value for key, value in zip(pk_keys, values)]

    def _live_rows(self, option: QueryOption) -> list:
        if is_soft_deletable(self.model) and not option.include_deleted:
            return [self.model.deleted_at.is_(None)]
        return []

    def _instance_values(self, instance: Any, plan: FieldPlan, extra: Sequence[str] = ()) -> Dict[str, Any]:
        pk_keys = set(primary_key_keys(self.model))
        state = sa_inspect(instance)
        state_dict = state.dict
        values: Dict[str, Any] = {}
        for key in list(plan.columns) + [key for key in extra if key not in plan.columns]:
            if key in pk_keys:
                continue
            if plan.explicit or key in extra:
                values[key] = getattr(instance, key)
            elif state.has_identity:
                # Loaded rows only write what changed since the load.
                if state.attrs[key].history.has_changes():
                    values[key] = state_dict.get(key)
            elif state_dict.get(key) is not None:
                values[key] = state_dict[key]
        return values

    def _bulk_values(self, values: Any, option: QueryOption) -> Dict[str, Any]:
        plan = plan_fields(self.model, option.selected_fields, option.omitted_fields)
        if isinstance(values, self.model):
            return self._instance_values(values, plan)
        if not isinstance(values, Mapping):
            raise MisuseError(f"values must be a mapping or an instance of {self.model.__name__}")

        pk_keys = set(primary_key_keys(self.model))
        payload: Dict[str, Any] = {}
        for field, value in values.items():
            prop = resolve_property(self.model, field)
            if isinstance(prop, RelationshipProperty) or prop.key in pk_keys:
                continue
            if prop.key in plan.columns:
                payload[prop.key] = value
        return payload

    def _preload_option(self, path: str):
        segments = [segment for segment in path.split(".") if segment]
        if not segments:
            raise MisuseError(f"invalid preload path {path!r}")

        current_cls = self.model
        loader = None
        for index, segment in enumerate(segments):
            prop = resolve_property(current_cls, segment)
            attribute = getattr(current_cls, prop.key)
            if isinstance(prop, RelationshipProperty):
                loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
                current_cls = prop.mapper.class_
            elif loader is not None and index == len(segments) - 1:
                loader = loader.load_only(attribute)
            else:
                raise MisuseError(f"preload path {path!r} must name a relationship")
        return loader

    def _column_options(self, option: QueryOption) -> list:
        pk_keys = set(primary_key_keys(self.model))
        omitted, _ = split_fields(self.model, option.omitted_fields)
        if option.selected_fields:
            selected, _ = split_fields(self.model, option.selected_fields)
            keep = [getattr(self.model, key) for key in selected if key not in omitted]
            if not keep:
                keep = [getattr(self.model, key) for key in primary_key_keys(self.model)]
            return [load_only(*keep)]
        hidden = [getattr(self.model, key) for key in omitted if key not in pk_keys]
        return [defer(attribute) for attribute in hidden]

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(
        self,
        model: Any,
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        commit: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> ModelType:
        """
        Insert ``model`` (an instance or a mapping of field values) and its
        selected associations.  Generated keys are written back onto the
        instance, which is returned.  A duplicate primary key raises the
        database's ``IntegrityError`` unless ``updates_on_conflict`` lists
        columns for this class.
        """

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        with log_context(**_build_context(model_name, "create", context)):
            instance = coerce_instance(self.model, model)
            plan = plan_fields(self.model, option.selected_fields, option.omitted_fields)
            logger.info(
                "Creating %s columns=%s associations=%s commit=%s",
                model_name,
                list(plan.columns),
                list(plan.relationships),
                commit,
            )
            try:
                self._save_graph(
                    session,
                    instance,
                    self.model,
                    plan,
                    conflict_columns_for(option, self.model),
                    option,
                    set(),
                )
                if commit:
                    session.commit()
            except Exception:
                logger.exception("Failed to create %s", model_name)
                if commit:
                    session.rollback()
                raise

            target_id = _instance_identity(instance)
            logger.info("Created %s target_id=%s commit=%s", model_name, target_id, commit)
            if commit:
                _emit_audit(
                    f"{model_name.lower()}.create",
                    {"operation": "create", "model": model_name, "target_id": target_id},
                )
            return instance

    def update(
        self,
        model: Any,
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        commit: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> ModelType:
        """
        Update the row identified by the primary key carried on ``model``.

        Without ``selected_fields`` only non-``None`` columns are written, or,
        for an instance loaded from the database, only the columns changed
        since it was loaded; selected columns are written as they are,
        ``None`` included.
        Associations present on the instance are saved unless the selector
        leaves them out.
        """

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        with log_context(**_build_context(model_name, "update", context)):
            instance = coerce_instance(self.model, model)
            criteria = self._primary_key_filter(instance)
            plan = plan_fields(self.model, option.selected_fields, option.omitted_fields)
            visited = {id(instance)}
            try:
                assigned = self._save_parents(session, instance, self.model, plan, option, visited)
                values = self._instance_values(instance, plan, extra=assigned)
                logger.info(
                    "Updating %s target_id=%s attributes=%s commit=%s",
                    model_name,
                    _instance_identity(instance),
                    _sanitize_payload(values),
                    commit,
                )
                if values:
                    apply_update_audit(session, self.mapper.local_table, values)
                    stmt = (
                        sa_update(self.model)
                        .where(*criteria, *self._live_rows(option))
                        .values(**values)
                    )
                    session.execute(stmt)
                self._save_children(session, instance, self.model, plan, option, visited)
                if commit:
                    session.commit()
            except Exception:
                logger.exception("Failed to update %s target_id=%s", model_name, _instance_identity(instance))
                if commit:
                    session.rollback()
                raise

            logger.info("Updated %s target_id=%s commit=%s", model_name, _instance_identity(instance), commit)
            if commit:
                _emit_audit(
                    f"{model_name.lower()}.update",
                    {
                        "operation": "update",
                        "model": model_name,
                        "target_id": _instance_identity(instance),
                        "after": _sanitize_payload(values),
                    },
                )
            return instance

    def upsert(
        self,
        models: Sequence[Any],
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        commit: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """
        Insert every element of ``models``; rows whose primary key already
        exists get the ``selected_fields`` columns overwritten (falling back
        to ``updates_on_conflict`` for this class) and are otherwise left
        untouched.
        """

        if not is_sequence(models):
            raise MisuseError("upsert requires a sequence of models")
        if len({type(item) for item in models}) > 1:
            raise MisuseError("upsert requires elements of a single type")

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        with log_context(**_build_context(model_name, "upsert", context)):
            instances = self.new_collection()
            instances.extend(coerce_instance(self.model, item) for item in models)
            if not instances:
                return instances

            plan = plan_fields(self.model, omitted=option.omitted_fields)
            selected_columns, _ = split_fields(self.model, option.selected_fields)
            if selected_columns:
                update_columns = resolve_column_names(self.model, selected_columns)
            else:
                update_columns = conflict_columns_for(option, self.model, default=())
            logger.info(
                "Upserting %s rows=%s update_columns=%s commit=%s",
                model_name,
                len(instances),
                list(update_columns),
                commit,
            )
            visited: Set[int] = set()
            try:
                for instance in instances:
                    self._save_graph(session, instance, self.model, plan, update_columns, option, visited)
                if commit:
                    session.commit()
            except Exception:
                logger.exception("Failed to upsert %s rows=%s", model_name, len(instances))
                if commit:
                    session.rollback()
                raise

            target_ids = [_instance_identity(instance) for instance in instances]
            logger.info("Upserted %s target_ids=%s commit=%s", model_name, target_ids, commit)
            if commit:
                _emit_audit(
                    f"{model_name.lower()}.upsert",
                    {"operation": "upsert", "model": model_name, "target_ids": target_ids},
                )
            return instances

    def delete(
        self,
        keys: Sequence[Any],
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        commit: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Delete the rows matching ``keys`` and return how many were affected.

        Soft-deletable models get ``deleted_at`` stamped unless
        ``option.hard_delete`` is set.  An empty ``keys`` is a no-op.
        """

        if not is_sequence(keys):
            raise MisuseError("delete requires a sequence of keys")
        if len(keys) == 0:
            return 0

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        soft = is_soft_deletable(self.model) and not option.hard_delete
        with log_context(**_build_context(model_name, "delete", context)):
            condition = build_where_by_keys(self.model, keys, option.keys)
            where_text, where_args = describe_where(condition)
            logger.info(
                "Deleting %s soft=%s where=%s args=%s commit=%s",
                model_name,
                soft,
                where_text,
                where_args,
                commit,
            )
            if soft:
                stmt = (
                    sa_update(self.model)
                    .where(condition, self.model.deleted_at.is_(None))
                    .values(deleted_at=utcnow())
                )
            else:
                stmt = sa_delete(self.model).where(condition)

            try:
                affected = session.execute(stmt).rowcount
                if commit:
                    session.commit()
            except Exception:
                logger.exception("Failed to delete %s where=%s", model_name, where_text)
                if commit:
                    session.rollback()
                raise

            logger.info("Deleted %s rows=%s soft=%s commit=%s", model_name, affected, soft, commit)
            if commit:
                _emit_audit(
                    f"{model_name.lower()}.delete",
                    {
                        "operation": "delete",
                        "model": model_name,
                        "soft": soft,
                        "keys": [str(key) for key in keys],
                        "rows": affected,
                    },
                )
            return affected

    def updates(
        self,
        keys: Sequence[Any],
        values: Any,
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        commit: bool = True,
        context: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Write ``values`` to every row matching ``keys`` and return the number
        of rows affected.  Associations carried by ``values`` are ignored.
        """

        if not is_sequence(keys):
            raise MisuseError("updates requires a sequence of keys")
        if len(keys) == 0:
            return 0

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        with log_context(**_build_context(model_name, "updates", context)):
            condition = build_where_by_keys(self.model, keys, option.keys)
            payload = self._bulk_values(values, option)
            where_text, where_args = describe_where(condition)
            if not payload:
                logger.info("Skipping updates on %s; nothing to write where=%s", model_name, where_text)
                return 0

            apply_update_audit(session, self.mapper.local_table, payload)
            logger.info(
                "Updating %s where=%s args=%s attributes=%s commit=%s",
                model_name,
                where_text,
                where_args,
                _sanitize_payload(payload),
                commit,
            )
            stmt = (
                sa_update(self.model)
                .where(condition, *self._live_rows(option))
                .values(**payload)
            )
            try:
                affected = session.execute(stmt).rowcount
                if commit:
                    session.commit()
            except Exception:
                logger.exception("Failed to update %s where=%s", model_name, where_text)
                if commit:
                    session.rollback()
                raise

            logger.info("Updated %s rows=%s commit=%s", model_name, affected, commit)
            if commit:
                _emit_audit(
                    f"{model_name.lower()}.updates",
                    {
                        "operation": "updates",
                        "model": model_name,
                        "rows": affected,
                        "after": _sanitize_payload(payload),
                    },
                )
            return affected

    def get(
        self,
        keys: Sequence[Any],
        option: QueryOption = DEFAULT_OPTION,
        *,
        session: Optional[Session] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """
        Load the rows matching ``keys`` with the relations named in
        ``option.preloaded_fields``.  Always returns a list.
        """

        session = _resolve_session(session)
        logger = get_logger("repository")
        model_name = self.model.__name__
        with log_context(**_build_context(model_name, "get", context)):
            condition = build_where_by_keys(self.model, keys, option.keys)
            where_text, where_args = describe_where(condition)
            logger.info(
                "Fetching %s where=%s args=%s preload=%s",
                model_name,
                where_text,
                where_args,
                list(option.preloaded_fields),
            )

            stmt = select(self.model).where(condition)
            loader_options = self._column_options(option)
            loader_options.extend(self._preload_option(path) for path in option.preloaded_fields)
            if not option.include_deleted:
                loader_options.append(
                    with_loader_criteria(
                        SoftDeleteMixin,
                        lambda cls: cls.deleted_at.is_(None),
                        include_aliases=True,
                    )
                )
            if loader_options:
                stmt = stmt.options(*loader_options)
            stmt = stmt.execution_options(populate_existing=True)

            results = self.new_collection()
            results.extend(session.scalars(stmt).all())
            logger.info("Fetched %s count=%s", model_name, len(results))
            return results
