"""
Seat Inventory Store: the ground truth for seat identity and base price.

Seat labels (the keys clients and venue maps use) are translated to seat ids
here and nowhere else.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..cache import get_cache, CacheKeyBuilder, CacheTTL, CacheInvalidator
from ..models import Seat, Show
from ..schemas.seat import SeatCreate, SeatResponse, ShowResponse
from ..utils.exceptions import (
    SeatNotFoundError, ShowNotFoundError, ValidationError
)

logger = logging.getLogger(__name__)


class InventoryService:
    """Read-mostly access to shows and their seats."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize the inventory service with a session factory."""
        self.session_factory = session_factory
        self.cache = get_cache()

    async def create_show(self, title: str, starts_at: datetime, currency: str = "gbp") -> ShowResponse:
        """Register a show so seats can be provisioned against it."""
        async with self.session_factory.begin() as session:
            show = Show(title=title, starts_at=starts_at, currency=currency.lower(), is_active=True)
            session.add(show)
            await session.flush()
            response = ShowResponse.model_validate(show)

        logger.info(f"Created show {response.id} ({title})")
        return response

    async def get_show(self, show_id: UUID) -> ShowResponse:
        async with self.session_factory() as session:
            show = await session.get(Show, show_id)
            if show is None:
                raise ShowNotFoundError(str(show_id))
            return ShowResponse.model_validate(show)

    async def provision_seats(self, show_id: UUID, seats_data: List[SeatCreate]) -> List[SeatResponse]:
        """
        Create the seat map for a show.

        A show's seat map is provisioned once; labels must be unique within the show.

        Args:
            show_id: Show UUID
            seats_data: Seats to create

        Returns:
            The created seats

        Raises:
            ShowNotFoundError: If the show does not exist
            ValidationError: If the show already has seats or labels collide
        """
        labels = [seat_data.resolved_label for seat_data in seats_data]
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        if duplicates:
            raise ValidationError(
                "Seat labels must be unique within a show",
                field_errors={"seats": [f"duplicate label {label}" for label in duplicates]}
            )

        try:
            async with self.session_factory.begin() as session:
                show = await session.get(Show, show_id)
                if show is None:
                    raise ShowNotFoundError(str(show_id))

                existing = await session.scalar(
                    select(func.count(Seat.id)).where(Seat.show_id == show_id)
                )
                if existing:
                    raise ValidationError(
                        f"Show {show_id} already has {existing} seats provisioned",
                        suggestions=["Adjust individual seat prices instead"]
                    )

                seats = [
                    Seat(
                        show_id=show_id,
                        label=seat_data.resolved_label,
                        section=seat_data.section,
                        row=seat_data.row,
                        number=seat_data.number,
                        base_price=seat_data.base_price,
                        is_accessible=seat_data.is_accessible,
                        position_x=seat_data.position_x,
                        position_y=seat_data.position_y,
                    )
                    for seat_data in seats_data
                ]
                session.add_all(seats)
                await session.flush()
                created = [SeatResponse.model_validate(seat) for seat in seats]
        except IntegrityError as e:
            raise ValidationError(f"Failed to provision seats: {e.orig}")

        await CacheInvalidator.invalidate_seat_caches(str(show_id))
        logger.info(f"Provisioned {len(created)} seats for show {show_id}")
        return created

    async def get_seats(self, show_id: UUID) -> List[SeatResponse]:
        """
        Get every seat of a show, ordered by label.

        Raises:
            ShowNotFoundError: If the show does not exist
        """
        cache_key = CacheKeyBuilder.seat_map(str(show_id))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return [SeatResponse(**seat) for seat in cached]

        async with self.session_factory() as session:
            show = await session.get(Show, show_id)
            if show is None:
                raise ShowNotFoundError(str(show_id))

            result = await session.execute(
                select(Seat).where(Seat.show_id == show_id).order_by(Seat.label)
            )
            seats = [SeatResponse.model_validate(seat) for seat in result.scalars()]

        await self.cache.set(
            cache_key,
            [seat.model_dump(mode="json") for seat in seats],
            ttl=CacheTTL.SEAT_MAP
        )
        return seats

    async def get_seat(self, seat_id: UUID) -> SeatResponse:
        """
        Get one seat.

        Raises:
            SeatNotFoundError: If the seat does not exist
        """
        cache_key = CacheKeyBuilder.seat_detail(str(seat_id))
        cached = await self.cache.get(cache_key)
        if cached is not None:
            return SeatResponse(**cached)

        async with self.session_factory() as session:
            seat = await session.get(Seat, seat_id)
            if seat is None:
                raise SeatNotFoundError([str(seat_id)])
            response = SeatResponse.model_validate(seat)

        await self.cache.set(cache_key, response.model_dump(mode="json"), ttl=CacheTTL.SEAT_DETAIL)
        return response

    async def resolve_seat_labels(self, show_id: UUID, labels: Iterable[str]) -> Dict[str, UUID]:
        """
        Translate external seat labels to seat ids.

        Raises:
            SeatNotFoundError: If any label is unknown for the show
        """
        wanted = set(labels)
        if not wanted:
            return {}

        async with self.session_factory() as session:
            result = await session.execute(
                select(Seat.label, Seat.id).where(
                    Seat.show_id == show_id,
                    Seat.label.in_(wanted)
                )
            )
            resolved = {label: seat_id for label, seat_id in result.all()}

        missing = wanted - resolved.keys()
        if missing:
            raise SeatNotFoundError(missing)
        return resolved

    async def update_seat_price(self, seat_id: UUID, base_price: int) -> SeatResponse:
        """
        Change a seat's base price. Existing holds keep the price captured when they were placed.

        Raises:
            SeatNotFoundError: If the seat does not exist
            ValidationError: If the price is negative
        """
        if base_price < 0:
            raise ValidationError("Seat price cannot be negative", field_errors={"base_price": ["must be >= 0"]})

        async with self.session_factory.begin() as session:
            seat = await session.get(Seat, seat_id)
            if seat is None:
                raise SeatNotFoundError([str(seat_id)])
            previous = seat.base_price
            seat.base_price = base_price
            await session.flush()
            response = SeatResponse.model_validate(seat)

        await CacheInvalidator.invalidate_seat_caches(str(response.show_id), str(seat_id))
        logger.info(f"Seat {seat_id} price changed from {previous} to {base_price}")
        return response
