"""Best-effort side effects that run after a financial write has committed.

Notifications and audit entries are not allowed to undo or block the write
that triggered them. run_best_effort makes that explicit: the outcome is
returned to the caller and logged, never raised.

Side effects that write go through run_best_effort_write, which gives them a
session of their own. A failed commit there rolls back only that session, so
the caller's committed objects stay loaded and readable.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from ledger_integrity.database import session_maker_for
from ledger_integrity.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SideEffectOutcome:
    name: str
    ok: bool
    result: Any = None
    error: str | None = None


async def run_best_effort(
    name: str,
    operation: Callable[[], Awaitable[Any]],
    **context: Any,
) -> SideEffectOutcome:
    """Await operation(); on failure log a warning and report ok=False."""
    try:
        result = await operation()
    except Exception as e:
        logger.warning(
            "Best-effort side effect failed",
            side_effect=name,
            error=str(e),
            error_type=type(e).__name__,
            **context,
        )
        return SideEffectOutcome(name=name, ok=False, error=str(e))
    return SideEffectOutcome(name=name, ok=True, result=result)


async def run_best_effort_write(
    name: str,
    db: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[Any]],
    **context: Any,
) -> SideEffectOutcome:
    """run_best_effort for operation(session) on a fresh session beside ``db``."""
    maker = session_maker_for(db)

    async def _in_own_session() -> Any:
        async with maker() as session:
            return await operation(session)

    return await run_best_effort(name, _in_own_session, **context)
