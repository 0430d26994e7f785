from __future__ import annotations

import json
from typing import Any, Dict, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from crudkit.extensions import db
from crudkit.utils.logging_utils import get_logger

_SENSITIVE_TOKENS = ("password", "secret", "token", "otp", "key", "passcode", "credential")


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _sanitize_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        lower = key.lower()
        if any(token in lower for token in _SENSITIVE_TOKENS):
            sanitized[key] = "***REDACTED***"
        else:
            sanitized[key] = _serialize_value(value)
    return sanitized


def _instance_identity(instance: Any) -> Optional[str]:
    mapper = sa_inspect(type(instance))
    parts = [getattr(instance, mapper.get_property_by_column(c).key, None) for c in mapper.primary_key]
    if all(part is None for part in parts):
        return None
    return ":".join(str(_serialize_value(part)) for part in parts)


def _emit_audit(event_name: str, detail: Dict[str, Any]) -> None:
    get_logger("audit").info(
        "%s %s",
        event_name,
        json.dumps(detail, default=_serialize_value, sort_keys=True),
    )


def _build_context(model_name: str, action: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    built = {"model": model_name, "action": action}
    if context:
        for key, value in context.items():
            built[f"ctx_{key}"] = value
    return built


def _resolve_session(session: Optional[Session]) -> Session:
    return session if session is not None else db.session
