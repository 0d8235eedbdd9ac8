"""
Explicit audit entries for workflow decisions (review, approve).

The change listeners in audit_auto only see a status column flip; routers
call `audit_log` to record the decision itself, e.g.

    await audit_log(s, module="compliance", action="review",
                    entity_type="evidence_submissions", entity_id=sub.id,
                    changes={"review_status": ("PENDING", "APPROVED")},
                    user_id=user.id)

Entries are only added to the session; the caller commits.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from compliancehub.middleware.audit_auto import current_ip_address
from compliancehub.models.audit import AuditLog


def _text(value) -> str | None:
    return None if value is None else str(value)


async def audit_log(
    session: AsyncSession,
    *,
    module: str,
    action: str,
    entity_type: str,
    entity_id: int,
    changes: dict[str, tuple[str | None, str | None]] | None = None,
    user_id: int | None = None,
    ip_address: str | None = None,
) -> None:
    """One entry per changed field, or a single field-less entry when `changes` is empty."""
    common = dict(
        user_id=user_id, module=module, action=action, entity_type=entity_type, entity_id=entity_id,
        ip_address=ip_address or current_ip_address(), created_at=datetime.utcnow(),
    )
    fields = [(name, _text(old), _text(new)) for name, (old, new) in (changes or {}).items()]
    if not fields:
        session.add(AuditLog(**common))
        return
    session.add_all([
        AuditLog(**common, field_name=name, old_value=old, new_value=new)
        for name, old, new in fields
    ])
