from datetime import date
from typing import List, Optional, Set

from sqlalchemy import or_, select

from leadcrm.models.calendar import CalendarException, CalendarSetting
from leadcrm.repositories.base import BaseRepository


class CalendarRepository(BaseRepository):
    """Calendar templates and closed dates used for slot generation."""

    async def list_settings(self, setting_id: Optional[int] = None) -> List[CalendarSetting]:
        query = select(CalendarSetting).where(CalendarSetting.is_active.is_(True))
        if setting_id is not None:
            query = query.where(CalendarSetting.id == setting_id)
        result = await self._db.execute(query.order_by(CalendarSetting.id))
        return list(result.scalars().all())

    async def closed_dates(
        self, start: date, end: date, setting_id: Optional[int] = None
    ) -> Set[date]:
        """Closed dates in ``[start, end]`` for *setting_id* or globally."""
        query = select(CalendarException.date).where(
            CalendarException.is_closed.is_(True),
            CalendarException.date >= start,
            CalendarException.date <= end,
        )
        if setting_id is None:
            query = query.where(CalendarException.calendar_setting_id.is_(None))
        else:
            query = query.where(
                or_(
                    CalendarException.calendar_setting_id.is_(None),
                    CalendarException.calendar_setting_id == setting_id,
                )
            )
        result = await self._db.execute(query)
        return set(result.scalars().all())
