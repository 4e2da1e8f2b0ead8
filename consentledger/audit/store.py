from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, Session, select


class AuditEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)
    actor: str = Field(index=True)
    action: str = Field(index=True)  # GRANTED, REVOKED, CODE_ISSUED, DENIED
    status: str  # ok, error
    application: Optional[str] = Field(default=None, index=True)
    scopes: Optional[str] = None  # space-separated, same shape as an OAuth scope parameter
    reasons: Optional[str] = None  # pipe-separated reasons for simplicity


def record_event(session: Session, actor: str, action: str, status: str,
                 application: Optional[str] = None, scopes: Optional[List[str]] = None,
                 reasons: Optional[List[str]] = None) -> AuditEvent:
    evt = AuditEvent(
        actor=actor or "anonymous",
        action=action,
        status=status,
        application=application,
        scopes=(" ".join(scopes) if scopes else None),
        reasons=("|".join(reasons) if reasons else None),
    )
    session.add(evt)
    session.commit()
    session.refresh(evt)
    return evt


def list_events(session: Session, limit: int = 50, actor: Optional[str] = None,
                action: Optional[str] = None) -> List[AuditEvent]:
    stmt = select(AuditEvent)
    if actor:
        stmt = stmt.where(AuditEvent.actor == actor)
    if action:
        stmt = stmt.where(AuditEvent.action == action)
    stmt = stmt.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit)
    return list(session.exec(stmt))
