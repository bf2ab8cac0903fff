"""
Celery tasks for hold expiry.
"""

import logging

from .celery_app import celery_app
from .worker_db import run_in_new_loop, with_session_factory
from ..services.expiry_reaper import ExpiryReaper

logger = logging.getLogger(__name__)


async def _sweep(session_factory):
    return await ExpiryReaper(session_factory).sweep()


@celery_app.task(name="sweep_expired_holds_task")
def sweep_expired_holds_task():
    """
    Periodic task releasing holds whose expiry has passed.

    Returns:
        dict with ``released_count`` and ``succeeded``
    """
    result = run_in_new_loop(with_session_factory(_sweep))
    if not result.succeeded:
        logger.warning(f"Hold sweep incomplete after {result.released_count} releases: {result.error}")
    return {"released_count": result.released_count, "succeeded": result.succeeded}
