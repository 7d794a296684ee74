from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from dealerhub.models.outbox import OutboxEvent


def emit_event(
    db: AsyncSession,
    *,
    aggregate_type: str,
    aggregate_id: str,
    event_type: str,
    payload: dict | None = None,
) -> None:
    # Added to the caller's session: commits or rolls back with the state change.
    db.add(OutboxEvent(
        aggregate_type=aggregate_type,
        aggregate_id=aggregate_id,
        event_type=event_type,
        payload=payload or {},
    ))
