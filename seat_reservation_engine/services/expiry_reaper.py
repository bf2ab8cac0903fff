"""
Expiry Reaper: releases holds whose ``expires_at`` has passed.

A sweep only moves rows that are still ACTIVE, so a hold confirmed or
extended a moment before the sweep is left alone. Failures are logged and
reported in the ``SweepResult``; nothing is raised to callers.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..models import Hold, HoldStatus
from ..utils.clock import utcnow
from ..utils.logging_config import log_business_event, log_performance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    released_count: int
    succeeded: bool = True
    error: Optional[str] = None


class ExpiryReaper:
    """Bulk-expires stale holds in batches."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Transition every ACTIVE hold with ``expires_at <= now`` to EXPIRED.

        Returns:
            SweepResult with the number of holds released. ``succeeded`` is
            False when storage failed part way; holds released by earlier
            batches stay released.
        """
        now = now or utcnow()
        started = time.perf_counter()
        released = 0

        try:
            while True:
                batch = await self._expire_batch(now)
                released += batch
                if batch < self.settings.reaper_batch_size:
                    break
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Expiry sweep failed after releasing {released} holds: {e}", exc_info=True)
            return SweepResult(released_count=released, succeeded=False, error=str(e))

        log_performance("expiry_sweep", time.perf_counter() - started, released_count=released)
        if released:
            log_business_event("holds_expired", {"released_count": released})
        return SweepResult(released_count=released)

    async def _expire_batch(self, now: datetime) -> int:
        async with self.session_factory.begin() as session:
            # Rows locked by an in-flight confirmation or extension are skipped
            hold_ids = (await session.execute(
                select(Hold.id)
                .where(Hold.status == HoldStatus.ACTIVE, Hold.expires_at <= now)
                .order_by(Hold.expires_at)
                .limit(self.settings.reaper_batch_size)
                .with_for_update(skip_locked=True)
            )).scalars().all()

            if not hold_ids:
                return 0

            result = await session.execute(
                update(Hold)
                .where(
                    Hold.id.in_(hold_ids),
                    Hold.status == HoldStatus.ACTIVE,
                    Hold.expires_at <= now,
                )
                .values(status=HoldStatus.EXPIRED, released_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0

    async def run_forever(self, interval_seconds: Optional[float] = None, stop: Optional[asyncio.Event] = None) -> None:
        """Sweep every ``interval_seconds`` until ``stop`` is set or the task is cancelled."""
        interval = interval_seconds or self.settings.reaper_interval_seconds
        stop = stop or asyncio.Event()
        logger.info(f"In-process expiry reaper started (every {interval}s)")

        while not stop.is_set():
            result = await self.sweep()
            if not result.succeeded:
                logger.warning("Expiry sweep failed; seats stay held until the next successful sweep")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        logger.info("In-process expiry reaper stopped")
