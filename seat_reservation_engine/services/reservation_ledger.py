"""
Reservation Ledger: time-bounded holds over seats, keyed by session token.

Mutual exclusion comes from the database, not from application locks:

* seat rows are locked in ascending id order (``SELECT ... FOR UPDATE`` on
  PostgreSQL, ``BEGIN IMMEDIATE`` on SQLite) before availability is checked;
* the partial unique index ``uq_holds_active_seat`` rejects a second ACTIVE
  hold for a seat even if locking is bypassed.

Every state change is a compare-and-set on ``status = ACTIVE`` so holds only
ever leave the active set once.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings, get_settings
from ..database import is_transient_error
from ..models import Booking, BookingSeat, BookingStatus, Hold, HoldStatus, Seat, Show
from ..utils.clock import as_utc, utcnow
from ..utils.exceptions import (
    ConcurrencyError,
    EmptySelectionError,
    HoldNotFoundError,
    MixedShowSelectionError,
    PersistenceFailureError,
    ReservationEngineError,
    SeatNotFoundError,
    SeatUnavailableError,
    ShowNotFoundError,
    TooManySeatsError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from ..utils.result import Err, Ok, Result
from ..utils.retry import retry_on_concurrency_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeldSeat:
    seat_id: UUID
    price_at_hold: int


@dataclass(frozen=True)
class HoldSet:
    """The live holds of one checkout attempt."""
    session_token: str
    show_id: UUID
    expires_at: datetime
    seats: Tuple[HeldSeat, ...]
    currency: Optional[str] = None

    @property
    def seat_ids(self) -> FrozenSet[UUID]:
        return frozenset(seat.seat_id for seat in self.seats)

    @property
    def total_amount(self) -> int:
        return sum(seat.price_at_hold for seat in self.seats)


def build_hold_set(holds: Sequence[Hold], currency: Optional[str] = None) -> HoldSet:
    """Collapse hold rows sharing a session token into a ``HoldSet``."""
    ordered = sorted(holds, key=lambda hold: str(hold.seat_id))
    return HoldSet(
        session_token=ordered[0].session_token,
        show_id=ordered[0].show_id,
        # Batches created at different times can differ; the earliest one lapses first
        expires_at=min(as_utc(hold.expires_at) for hold in ordered),
        seats=tuple(HeldSeat(hold.seat_id, hold.price_at_hold) for hold in ordered),
        currency=currency,
    )


def live_holds_query(session_token: str, now: datetime):
    return select(Hold).where(
        Hold.session_token == session_token,
        Hold.status == HoldStatus.ACTIVE,
        Hold.expires_at > now,
    )


class ReservationLedger:
    """Creates, cancels and extends seat holds."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Optional[Settings] = None
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    async def create_holds(
        self,
        seat_ids: Iterable[UUID],
        session_token: str,
        ttl_seconds: Optional[int] = None
    ) -> Result[HoldSet, ReservationEngineError]:
        """
        Hold every requested seat for ``session_token`` or none of them.

        Args:
            seat_ids: Seats to hold; all must belong to one show
            session_token: Checkout attempt the holds are grouped under
            ttl_seconds: Hold lifetime, defaults to ``hold_ttl_seconds``

        Returns:
            ``Ok(HoldSet)`` on success, otherwise ``Err`` with one of
            EmptySelectionError, TooManySeatsError, ValidationError,
            SeatNotFoundError, MixedShowSelectionError, ShowNotFoundError,
            SeatUnavailableError or PersistenceFailureError.
        """
        requested = sorted(set(seat_ids), key=str)
        if not requested:
            return Err(EmptySelectionError())

        if len(requested) > self.settings.max_seats_per_hold:
            return Err(TooManySeatsError(len(requested), self.settings.max_seats_per_hold))

        ttl = self.settings.hold_ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0 or ttl > self.settings.max_hold_ttl_seconds:
            return Err(ValidationError(
                f"Hold TTL must be between 1 and {self.settings.max_hold_ttl_seconds} seconds",
                field_errors={"ttl_seconds": [f"got {ttl}"]}
            ))

        try:
            result = await self._create_holds(requested, session_token, ttl)
        except ConcurrencyError as e:
            logger.error(f"create_holds for {session_token} gave up after retries: {e}")
            return Err(PersistenceFailureError("create_holds", str(e)))
        except SQLAlchemyError as e:
            logger.error(f"create_holds for {session_token} failed: {e}")
            return Err(PersistenceFailureError("create_holds", str(e)))

        if isinstance(result, Ok):
            hold_set = result.value
            log_business_event("holds_created", {
                "session_token": session_token,
                "show_id": str(hold_set.show_id),
                "seat_count": len(hold_set.seats),
                "expires_at": hold_set.expires_at.isoformat(),
            })
        else:
            logger.info(f"Hold request for {session_token} rejected: {result.error.error_code.value}")
        return result

    @retry_on_concurrency_error()
    async def _create_holds(
        self,
        seat_ids: List[UUID],
        session_token: str,
        ttl_seconds: int
    ) -> Result[HoldSet, ReservationEngineError]:
        try:
            async with self.session_factory.begin() as session:
                return await self._create_holds_in(session, seat_ids, session_token, ttl_seconds)
        except IntegrityError:
            # Another transaction won the partial unique index race
            conflicts = await self._find_conflicts(seat_ids)
            return Err(SeatUnavailableError(conflicts or seat_ids))
        except DBAPIError as e:
            if is_transient_error(e):
                raise ConcurrencyError(f"Hold transaction aborted: {e.orig}") from e
            raise

    async def _create_holds_in(
        self,
        session: AsyncSession,
        seat_ids: List[UUID],
        session_token: str,
        ttl_seconds: int
    ) -> Result[HoldSet, ReservationEngineError]:
        now = utcnow()

        # Lock in a globally consistent order so overlapping requests cannot deadlock
        seats = (await session.execute(
            select(Seat)
            .where(Seat.id.in_(seat_ids))
            .order_by(Seat.id)
            .with_for_update()
        )).scalars().all()

        missing = set(seat_ids) - {seat.id for seat in seats}
        if missing:
            return Err(SeatNotFoundError(missing))

        show_ids = {seat.show_id for seat in seats}
        if len(show_ids) > 1:
            return Err(MixedShowSelectionError(show_ids))
        show_id = show_ids.pop()

        show = await session.get(Show, show_id)
        if show is None or not show.is_active:
            return Err(ShowNotFoundError(str(show_id)))

        existing = (await session.execute(live_holds_query(session_token, now))).scalars().all()
        if existing:
            if any(hold.show_id != show_id for hold in existing):
                return Err(MixedShowSelectionError({show_id, *(hold.show_id for hold in existing)}))
            if len(existing) + len(seats) > self.settings.max_seats_per_hold:
                return Err(TooManySeatsError(len(existing) + len(seats), self.settings.max_seats_per_hold))

        # Stale holds on these seats are expired here rather than waiting for the reaper
        await session.execute(
            update(Hold)
            .where(
                Hold.seat_id.in_(seat_ids),
                Hold.status == HoldStatus.ACTIVE,
                Hold.expires_at <= now,
            )
            .values(status=HoldStatus.EXPIRED, released_at=now)
            .execution_options(synchronize_session=False)
        )

        conflicts = await self._conflicting_seats(session, seat_ids)
        if conflicts:
            return Err(SeatUnavailableError(conflicts))

        expires_at = now + timedelta(seconds=ttl_seconds)
        holds = [
            Hold(
                seat_id=seat.id,
                show_id=show_id,
                session_token=session_token,
                status=HoldStatus.ACTIVE,
                expires_at=expires_at,
                price_at_hold=seat.base_price,
            )
            for seat in seats
        ]
        session.add_all(holds)
        await session.flush()

        return Ok(build_hold_set(holds, show.currency))

    async def _conflicting_seats(self, session: AsyncSession, seat_ids: List[UUID]) -> set:
        """Seats with an ACTIVE hold or in a confirmed booking."""
        held = (await session.execute(
            select(Hold.seat_id).where(
                Hold.seat_id.in_(seat_ids),
                Hold.status == HoldStatus.ACTIVE,
            )
        )).scalars().all()

        sold = (await session.execute(
            select(BookingSeat.seat_id)
            .join(Booking, Booking.id == BookingSeat.booking_id)
            .where(
                BookingSeat.seat_id.in_(seat_ids),
                Booking.status == BookingStatus.CONFIRMED,
            )
        )).scalars().all()

        return set(held) | set(sold)

    async def _find_conflicts(self, seat_ids: List[UUID]) -> set:
        async with self.session_factory() as session:
            return await self._conflicting_seats(session, seat_ids)

    async def cancel_holds(self, session_token: str) -> Result[int, ReservationEngineError]:
        """
        Cancel every ACTIVE hold under ``session_token``.

        Idempotent: a second call returns ``Ok(0)``.
        """
        now = utcnow()
        try:
            async with self.session_factory.begin() as session:
                result = await session.execute(
                    update(Hold)
                    .where(
                        Hold.session_token == session_token,
                        Hold.status == HoldStatus.ACTIVE,
                    )
                    .values(status=HoldStatus.CANCELLED, released_at=now)
                    .execution_options(synchronize_session=False)
                )
                cancelled = result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"cancel_holds for {session_token} failed: {e}")
            return Err(PersistenceFailureError("cancel_holds", str(e)))

        if cancelled:
            log_business_event("holds_cancelled", {
                "session_token": session_token,
                "seat_count": cancelled,
            })
        return Ok(cancelled)

    async def extend_holds(
        self,
        session_token: str,
        additional_seconds: int
    ) -> Result[HoldSet, ReservationEngineError]:
        """
        Push ``expires_at`` forward for the live holds of a checkout attempt.

        Returns ``Err(HoldNotFoundError)`` when nothing live remains (already
        expired, cancelled or confirmed).
        """
        if additional_seconds <= 0 or additional_seconds > self.settings.max_hold_extension_seconds:
            return Err(ValidationError(
                f"Extension must be between 1 and {self.settings.max_hold_extension_seconds} seconds",
                field_errors={"additional_seconds": [f"got {additional_seconds}"]}
            ))

        now = utcnow()
        try:
            async with self.session_factory.begin() as session:
                holds = (await session.execute(
                    live_holds_query(session_token, now)
                    .order_by(Hold.seat_id)
                    .with_for_update()
                )).scalars().all()

                if not holds:
                    return Err(HoldNotFoundError(session_token))

                new_expires_at = max(as_utc(hold.expires_at) for hold in holds) + timedelta(seconds=additional_seconds)
                if new_expires_at - now > timedelta(seconds=self.settings.max_hold_ttl_seconds):
                    return Err(ValidationError(
                        f"Holds cannot be extended beyond {self.settings.max_hold_ttl_seconds} seconds from now",
                        field_errors={"additional_seconds": [f"got {additional_seconds}"]}
                    ))

                await session.execute(
                    update(Hold)
                    .where(
                        Hold.id.in_([hold.id for hold in holds]),
                        Hold.status == HoldStatus.ACTIVE,
                    )
                    .values(expires_at=new_expires_at)
                    .execution_options(synchronize_session=False)
                )
                show = await session.get(Show, holds[0].show_id)
                hold_set = replace(
                    build_hold_set(holds, show.currency if show is not None else None),
                    expires_at=new_expires_at,
                )
        except SQLAlchemyError as e:
            logger.error(f"extend_holds for {session_token} failed: {e}")
            return Err(PersistenceFailureError("extend_holds", str(e)))

        log_business_event("holds_extended", {
            "session_token": session_token,
            "expires_at": hold_set.expires_at.isoformat(),
        })
        return Ok(hold_set)

    async def get_active_holds(self, session_token: str) -> Result[HoldSet, ReservationEngineError]:
        """The live (ACTIVE, unexpired) holds for ``session_token``."""
        try:
            async with self.session_factory() as session:
                holds = (await session.execute(live_holds_query(session_token, utcnow()))).scalars().all()
                show = await session.get(Show, holds[0].show_id) if holds else None
        except SQLAlchemyError as e:
            return Err(PersistenceFailureError("get_active_holds", str(e)))

        if not holds:
            return Err(HoldNotFoundError(session_token))
        return Ok(build_hold_set(holds, show.currency if show is not None else None))
