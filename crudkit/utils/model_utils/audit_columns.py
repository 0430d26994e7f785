"""
Fill ``created_by`` / ``org_id`` on inserts and ``updated_by`` on updates.

The acting identity is stored on the session (``session.info``) so every
repository call made through that session stamps the same user.  A table can
opt out of a column with ``AuditOption(table, column, skip=True)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy import Table
from sqlalchemy.orm import Session

AUDIT_INFO_KEY = "crudkit_audit_identity"

CREATED_BY = "created_by"
UPDATED_BY = "updated_by"
ORG_ID = "org_id"


@dataclass(frozen=True)
class AuditOption:
    table: str
    audited_column: str
    skip: bool = False


@dataclass(frozen=True)
class AuditIdentity:
    user_id: str
    org_id: Optional[str] = None
    options: Tuple[AuditOption, ...] = ()


def set_audit_identity(
    session: Session,
    user_id: str,
    org_id: Optional[str] = None,
    options: Iterable[AuditOption] = (),
) -> AuditIdentity:
    identity = AuditIdentity(str(user_id), str(org_id) if org_id is not None else None, tuple(options))
    session.info[AUDIT_INFO_KEY] = identity
    return identity


def clear_audit_identity(session: Session) -> None:
    session.info.pop(AUDIT_INFO_KEY, None)


def current_audit_identity(session: Session) -> Optional[AuditIdentity]:
    return session.info.get(AUDIT_INFO_KEY)


def can_set_audit_value(table_name: str, column: str, options: Iterable[AuditOption]) -> bool:
    for option in options:
        if option.table == table_name and option.audited_column == column and option.skip:
            return False
    return True


def _apply(table: Table, values: Dict[str, Any], column: str, value: Optional[str], identity: AuditIdentity) -> None:
    if value is None or column not in table.c:
        return
    if can_set_audit_value(table.name, column, identity.options):
        values[table.c[column].key] = value


def apply_insert_audit(session: Session, table: Table, values: Dict[str, Any]) -> Dict[str, Any]:
    identity = current_audit_identity(session)
    if identity is not None:
        _apply(table, values, CREATED_BY, identity.user_id, identity)
        _apply(table, values, ORG_ID, identity.org_id, identity)
    return values


def apply_update_audit(session: Session, table: Table, values: Dict[str, Any]) -> Dict[str, Any]:
    identity = current_audit_identity(session)
    if identity is not None:
        _apply(table, values, UPDATED_BY, identity.user_id, identity)
    return values
