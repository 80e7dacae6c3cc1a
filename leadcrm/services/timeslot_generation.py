import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, NamedTuple, Optional, Sequence

from leadcrm.core.cache import TimeslotCache
from leadcrm.core.config import settings
from leadcrm.core.timezone import business_today, utc_now
from leadcrm.models.calendar import CalendarSetting
from leadcrm.models.timeslot import Timeslot
from leadcrm.repositories.calendar_repository import CalendarRepository
from leadcrm.repositories.timeslot_repository import TimeslotRepository
from leadcrm.schemas.appointment import TimeslotGenerationResult, TimeslotOut

logger = logging.getLogger(__name__)


def is_working_day(day: date, working_days) -> bool:
    """``working_days`` holds ISO weekdays; 0 is accepted for Sunday."""
    weekday = day.isoweekday()
    days = set(working_days or [])
    return weekday in days or (weekday == 7 and 0 in days)


class CalendarTemplate(NamedTuple):
    """Plain copy of a :class:`CalendarSetting` row.

    Detached from the session so a rollback of one setting cannot expire
    the values the loop still needs for the next.
    """

    id: int
    name: str
    working_days: Sequence[int]
    daily_start_time: time
    daily_end_time: time
    slot_duration_minutes: int
    default_max_capacity: int

    @classmethod
    def from_model(cls, row: CalendarSetting) -> "CalendarTemplate":
        return cls(
            row.id,
            row.name,
            list(row.working_days or []),
            row.daily_start_time,
            row.daily_end_time,
            row.slot_duration_minutes,
            row.default_max_capacity,
        )


def day_slots(setting: CalendarTemplate, day: date):
    """``(start, end)`` time pairs for *day*; a slot must end by closing."""
    step = timedelta(minutes=setting.slot_duration_minutes)
    current = datetime.combine(day, setting.daily_start_time)
    closing = datetime.combine(day, setting.daily_end_time)
    while current < closing:
        slot_end = current + step
        if slot_end > closing:
            break
        yield current.time(), slot_end.time()
        current = slot_end


class TimeslotGenerationService:
    """Materialises bookable slots from calendar settings.

    Safe to re-run: a slot with the same date, start, end and setting is
    never created twice.  Each setting is committed separately and a
    failing setting is reported without stopping the others.
    """

    def __init__(
        self,
        calendar_repo: CalendarRepository,
        timeslot_repo: TimeslotRepository,
        cache: Optional[TimeslotCache] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._calendar = calendar_repo
        self._timeslots = timeslot_repo
        self._cache: TimeslotCache = cache or TimeslotCache()
        self._clock = clock

    async def generate(
        self,
        days_ahead: Optional[int] = None,
        calendar_setting_id: Optional[int] = None,
    ) -> TimeslotGenerationResult:
        days_ahead = days_ahead if days_ahead is not None else settings.TIMESLOT_DAYS_AHEAD
        start = business_today(self._clock())
        end = start + timedelta(days=days_ahead)

        calendar_settings = [
            CalendarTemplate.from_model(row)
            for row in await self._calendar.list_settings(calendar_setting_id)
        ]
        result = TimeslotGenerationResult()
        if not calendar_settings:
            result.success = False
            result.message = "No calendar settings found"
            return result

        touched_dates = set()
        for setting in calendar_settings:
            try:
                created = await self._generate_for_setting(setting, start, end)
                await self._timeslots.commit()
            except Exception as exc:
                await self._timeslots.rollback()
                logger.warning(
                    "Timeslot generation failed for calendar setting %s",
                    setting.id,
                    exc_info=True,
                )
                result.errors.append(f"{setting.name} ({setting.id}): {exc}")
                continue
            result.created_count += len(created)
            result.slots.extend(created)
            touched_dates.update(slot.date for slot in created)

        await self._cache.drop_days(touched_dates)
        result.success = not result.errors
        result.message = (
            f"Generated {result.created_count} timeslots from {start.isoformat()} "
            f"to {end.isoformat()}"
        )
        logger.info(result.message)
        return result

    async def _generate_for_setting(
        self, setting: CalendarTemplate, start: date, end: date
    ) -> List[TimeslotOut]:
        closed = await self._calendar.closed_dates(start, end, setting.id)
        created: List[TimeslotOut] = []
        day = start
        while day <= end:
            if is_working_day(day, setting.working_days) and day not in closed:
                for slot_start, slot_end in day_slots(setting, day):
                    if await self._timeslots.exists(day, slot_start, slot_end, setting.id):
                        continue
                    slot = await self._timeslots.add(
                        Timeslot(
                            date=day,
                            start_time=slot_start,
                            end_time=slot_end,
                            max_capacity=setting.default_max_capacity,
                            occupied_count=0,
                            calendar_setting_id=setting.id,
                            is_disabled=False,
                        )
                    )
                    created.append(TimeslotOut.model_validate(slot))
            day += timedelta(days=1)
        return created
