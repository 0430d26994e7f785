from datetime import datetime, timezone

from sqlalchemy.orm import declared_attr

from ..extensions import db


def utcnow():
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """Rows are stamped with ``deleted_at`` instead of being removed."""

    @declared_attr
    def deleted_at(cls):
        return db.Column(db.DateTime(timezone=True), nullable=True, index=True)


class AuditMixin:
    created_by = db.Column(db.String(64), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)
    org_id = db.Column(db.String(64), nullable=True)


def is_soft_deletable(model_cls) -> bool:
    return isinstance(model_cls, type) and issubclass(model_cls, SoftDeleteMixin)
