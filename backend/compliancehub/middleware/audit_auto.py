"""
Change capture for the audit trail.

Every ORM flush is inspected: new rows become one `create` entry, deleted
rows one `delete` entry, and modified rows one `update` entry per changed
column (old/new value as text). Entries are written in the same flush
transaction as the change itself, so a rollback discards both.

The acting user and client IP are request-scoped and travel in context
variables set by `AuditContextMiddleware` in main.py.
"""
from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from compliancehub.models.audit import AuditLog
from compliancehub.models.base import Base

logger = logging.getLogger(__name__)

_user_id: contextvars.ContextVar[int | None] = contextvars.ContextVar("audit_user_id", default=None)
_ip_address: contextvars.ContextVar[str | None] = contextvars.ContextVar("audit_ip_address", default=None)

_PENDING_KEY = "audit_pending"
_WRITING_KEY = "audit_writing"

SKIPPED_TABLES = frozenset({"audit_log", "alembic_version", "questionnaire_activities"})
SKIPPED_COLUMNS = frozenset({"updated_at", "last_updated"})
REDACTED_COLUMNS = frozenset({"password_hash"})

MODULES: dict[str, str] = {
    "organization_users": "organizations",
    "organization_roles": "organizations",
    "compliance_frameworks": "compliance",
    "compliance_topics": "compliance",
    "compliance_components": "compliance",
    "compliance_clauses": "compliance",
    "organization_compliance_selections": "compliance",
    "evidence_submissions": "compliance",
    "compliance_assessments": "compliance",
    "framework_mappings": "frameworks",
    "evidence_versions": "evidence",
    "control_evidence_links": "evidence",
    "questions": "questionnaires",
    "answers": "questionnaires",
}


def set_audit_context(*, user_id: int | None = None, ip_address: str | None = None) -> None:
    _user_id.set(user_id)
    _ip_address.set(ip_address)


def current_ip_address() -> str | None:
    return _ip_address.get()


def module_for(table: str) -> str:
    return MODULES.get(table, table)


def _tracked(obj: Any) -> bool:
    return isinstance(obj, Base) and obj.__tablename__ not in SKIPPED_TABLES


def _primary_key(obj: Any) -> int:
    pk = inspect(type(obj)).primary_key
    value = getattr(obj, pk[0].name, None) if pk else None
    return value if value is not None else 0


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


def _column_changes(obj: Any) -> Iterator[tuple[str, Any, Any]]:
    state = inspect(obj)
    columns = {c.key for c in state.mapper.column_attrs}
    for attr in state.attrs:
        if attr.key not in columns or attr.key in SKIPPED_COLUMNS:
            continue
        hist = attr.history
        if not hist.has_changes():
            continue
        old = hist.deleted[0] if hist.deleted else None
        new = hist.added[0] if hist.added else None
        if attr.key in REDACTED_COLUMNS:
            old = new = "***"
        yield attr.key, old, new


# ═══════════════════ LISTENERS ═══════════════════

def _collect(session: Session, flush_context: Any, instances: Any) -> None:
    """before_flush: snapshot changes while attribute history still holds old values."""
    if session.info.get(_WRITING_KEY):
        return
    pending: list[tuple[str, Any, dict]] = []

    for obj in session.dirty:
        if not _tracked(obj) or not session.is_modified(obj, include_collections=False):
            continue
        for field, old, new in _column_changes(obj):
            pending.append(("update", obj, {
                "field_name": field, "old_value": _as_text(old), "new_value": _as_text(new),
            }))
    # inserted rows get their id after the flush, so keep the object itself
    pending.extend(("create", obj, {}) for obj in session.new if _tracked(obj))
    pending.extend(("delete", obj, {"entity_id": _primary_key(obj)}) for obj in session.deleted if _tracked(obj))

    session.info[_PENDING_KEY] = pending


def _write(session: Session, flush_context: Any) -> None:
    """after_flush: turn the snapshot into AuditLog rows (flushed with the next flush or commit)."""
    if session.info.get(_WRITING_KEY):
        return
    pending = session.info.pop(_PENDING_KEY, None)
    if not pending:
        return

    user_id, ip_address, now = _user_id.get(), _ip_address.get(), datetime.utcnow()
    session.info[_WRITING_KEY] = True
    try:
        for action, obj, fields in pending:
            table = obj.__tablename__
            session.add(AuditLog(
                user_id=user_id,
                module=module_for(table),
                action=action,
                entity_type=table,
                entity_id=fields.pop("entity_id", None) or _primary_key(obj),
                ip_address=ip_address,
                created_at=now,
                **fields,
            ))
    finally:
        session.info[_WRITING_KEY] = False


_installed = False


def install_audit_listeners() -> None:
    global _installed
    if _installed:
        return
    event.listen(Session, "before_flush", _collect)
    event.listen(Session, "after_flush", _write)
    _installed = True
    logger.info("Audit listeners installed")
