from datetime import date, time
from typing import List, Optional, Sequence

from sqlalchemy import case, select, update

from leadcrm.models.timeslot import Timeslot
from leadcrm.repositories.base import BaseRepository


def is_available(slot: Timeslot) -> bool:
    """A slot can take one more booking."""
    return not slot.is_disabled and slot.occupied_count < slot.max_capacity


class TimeslotRepository(BaseRepository):
    """Capacity store for ``timeslots.occupied_count``.

    Counter mutations are single UPDATE statements evaluated by the
    database, never read-modify-write in Python, so concurrent requests
    cannot lose increments.  None of these methods commit.
    """

    async def get_by_id(self, timeslot_id: int) -> Optional[Timeslot]:
        result = await self._db.execute(
            select(Timeslot)
            .where(Timeslot.id == timeslot_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_many(
        self, timeslot_ids: Sequence[int], for_update: bool = False
    ) -> List[Timeslot]:
        """Return the slots for *timeslot_ids*, ordered by id.

        With *for_update* the rows are locked until the transaction ends
        (``SELECT ... FOR UPDATE``; a no-op on SQLite).
        """
        if not timeslot_ids:
            return []
        query = (
            select(Timeslot)
            .where(Timeslot.id.in_(list(timeslot_ids)))
            .order_by(Timeslot.id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def reserve(self, timeslot_id: int) -> None:
        """Take one seat unconditionally."""
        await self._db.execute(
            update(Timeslot)
            .where(Timeslot.id == timeslot_id)
            .values(occupied_count=Timeslot.occupied_count + 1)
            .execution_options(synchronize_session=False)
        )

    async def try_reserve(self, timeslot_id: int) -> bool:
        """Take one seat only if the slot is enabled and not full.

        The capacity check and the increment are one statement, so two
        concurrent bookings for the last seat cannot both succeed.
        Returns ``True`` when a seat was taken.
        """
        result = await self._db.execute(
            update(Timeslot)
            .where(
                Timeslot.id == timeslot_id,
                Timeslot.is_disabled.is_(False),
                Timeslot.occupied_count < Timeslot.max_capacity,
            )
            .values(occupied_count=Timeslot.occupied_count + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release(self, timeslot_id: int) -> None:
        """Give back one seat, never going below zero."""
        await self._db.execute(
            update(Timeslot)
            .where(Timeslot.id == timeslot_id)
            .values(
                occupied_count=case(
                    (Timeslot.occupied_count > 0, Timeslot.occupied_count - 1),
                    else_=0,
                )
            )
            .execution_options(synchronize_session=False)
        )

    async def list_for_date(
        self, day: date, include_disabled: bool = False
    ) -> List[Timeslot]:
        query = (
            select(Timeslot)
            .where(Timeslot.date == day)
            .order_by(Timeslot.start_time, Timeslot.id)
            .execution_options(populate_existing=True)
        )
        if not include_disabled:
            query = query.where(Timeslot.is_disabled.is_(False))
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def exists(
        self,
        day: date,
        start_time: time,
        end_time: time,
        calendar_setting_id: Optional[int],
    ) -> bool:
        query = select(Timeslot.id).where(
            Timeslot.date == day,
            Timeslot.start_time == start_time,
            Timeslot.end_time == end_time,
        )
        if calendar_setting_id is None:
            query = query.where(Timeslot.calendar_setting_id.is_(None))
        else:
            query = query.where(Timeslot.calendar_setting_id == calendar_setting_id)
        result = await self._db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def add(self, slot: Timeslot) -> Timeslot:
        self._db.add(slot)
        await self._db.flush()
        return slot
