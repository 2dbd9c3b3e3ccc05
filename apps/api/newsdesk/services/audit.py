from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.requests import Request

from newsdesk.context import get_correlation_id
from newsdesk.core.auth import AuthUser
from newsdesk.models.audit import AuditLog


@dataclass
class AuditActor:
    actor_id: str
    ip_address: str | None = None
    user_agent: str | None = None
    correlation_id: str | None = None


def actor_from_request(request: Request, user: AuthUser) -> AuditActor:
    context = getattr(request.state, "context", None)
    return AuditActor(
        actor_id=user.sub,
        ip_address=getattr(context, "ip_address", None),
        user_agent=getattr(context, "user_agent", None),
        correlation_id=get_correlation_id() or getattr(context, "correlation_id", None) or None,
    )


def add_audit_log(
    db: Session,
    actor: AuditActor,
    action: str,
    entity_type: str,
    entity_id: str,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; the caller commits."""

    event = AuditLog(
        actor_id=actor.actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata or {},
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
        correlation_id=actor.correlation_id,
    )
    db.add(event)
    return event


def list_audit_logs(
    db: Session,
    *,
    limit: int,
    entity_type: str | None = None,
    actor_id: str | None = None,
) -> list[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
    if entity_type is not None:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if actor_id is not None:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    return list(db.scalars(stmt).all())
