"""Guarded status transitions for workflow rows."""

from enum import Enum
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from .errors import InvalidStateTransition, NotFound


async def transition(
    session: AsyncSession,
    model,
    entity_id: str,
    from_status: Enum,
    to_status: Enum,
    instance: Optional[Any] = None,
    **values,
) -> None:
    """Move a row from one status to another, or fail.

    The flip is a single conditional UPDATE (WHERE status = from_status), so
    of any number of concurrent attempts exactly one succeeds. When
    ``instance`` is given, its loaded attributes are updated to match.

    Raises:
        NotFound: no row with that id
        InvalidStateTransition: row is not in from_status
    """
    label = model.__name__
    result = await session.execute(
        update(model)
        .where(model.id == entity_id, model.status == from_status)
        .values(status=to_status, **values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        current = (await session.execute(
            select(model.status).where(model.id == entity_id)
        )).scalar_one_or_none()
        if current is None:
            raise NotFound(f"{label} {entity_id} not found")
        raise InvalidStateTransition(
            f"{label} {entity_id} is {current.value}; cannot move to {to_status.value}"
        )

    if instance is not None:
        set_committed_value(instance, "status", to_status)
        for key, value in values.items():
            set_committed_value(instance, key, value)
