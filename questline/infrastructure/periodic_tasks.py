"""Periodic background tasks.

Each function is a no-arg async coroutine registered with the
PeriodicScheduler in ``questline.main``.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from questline.infrastructure.database.session import get_db_session
from questline.shared.utils.logging import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Auto-archive completed instances (hourly by default)
# ---------------------------------------------------------------------------

async def auto_archive_instances() -> int:
    """Archive completed instances that have been idle past the retention window.

    Returns the number of instances archived.
    """
    from questline.instances.service import LifecycleService

    try:
        async with get_db_session() as session:
            service = LifecycleService(session)
            results = await service.archive_stale_completed()
    except SQLAlchemyError as e:
        logger.error("auto_archive_instances_failed", error=str(e))
        return 0

    archived = sum(1 for r in results if r.success)
    if archived:
        logger.info("auto_archive_instances_done", archived=archived)
    return archived
