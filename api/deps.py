from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from services.authorization import ActorContext


async def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_forwarded_for: Optional[str] = Header(None),
) -> ActorContext:
    """Build the actor from identity headers set by the upstream auth gateway."""
    source = x_forwarded_for.split(",")[0].strip() if x_forwarded_for else None
    if not source and request.client:
        source = request.client.host
    return ActorContext.from_headers(x_user_id, x_user_role, source)
