from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession

from models import SystemLog
from utils.clock import utcnow
from utils.serialization import to_jsonable

if TYPE_CHECKING:
    from services.authorization import ActorContext


def record_audit(
    session: AsyncSession,
    actor: ActorContext | None,
    action: str,
    entity_type: str,
    entity_id: str | None,
    new_values: dict[str, Any] | None = None,
    old_values: dict[str, Any] | None = None,
) -> SystemLog:
    """
    Append one audit entry to the current unit of work.
    The entry commits or rolls back together with the transition it describes.
    ``actor=None`` marks a system-initiated transition.
    """
    entry = SystemLog(
        id=f"log-{uuid.uuid4().hex[:16]}",
        actor_id=actor.actor_id if actor else None,
        actor_role=actor.role.value if actor else "system",
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_values=to_jsonable(old_values) if old_values else None,
        new_values=to_jsonable(new_values) if new_values else None,
        ip_address=(actor.source_address if actor else "system") or "unknown",
        created_at=utcnow(),
    )
    session.add(entry)
    return entry
