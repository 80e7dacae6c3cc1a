from datetime import date, time

import pytest

from leadcrm.models import CalendarException, CalendarSetting
from leadcrm.repositories.calendar_repository import CalendarRepository
from leadcrm.repositories.timeslot_repository import TimeslotRepository
from leadcrm.services.timeslot_generation import (
    CalendarTemplate,
    TimeslotGenerationService,
    day_slots,
    is_working_day,
)


def _template(**overrides) -> CalendarTemplate:
    values = dict(
        id=1,
        name="Main branch",
        working_days=[1, 2, 3, 4, 5],
        daily_start_time=time(9, 0),
        daily_end_time=time(10, 0),
        slot_duration_minutes=30,
        default_max_capacity=2,
    )
    values.update(overrides)
    return CalendarTemplate(**values)


@pytest.fixture
def service(db_session, mock_cache, clock):
    return TimeslotGenerationService(
        calendar_repo=CalendarRepository(db_session),
        timeslot_repo=TimeslotRepository(db_session),
        cache=mock_cache,
        clock=clock,
    )


async def _calendar(db_session, **overrides) -> int:
    values = dict(
        name="Main branch",
        working_days=[1, 2, 3, 4, 5],
        daily_start_time=time(9, 0),
        daily_end_time=time(10, 0),
        slot_duration_minutes=30,
        default_max_capacity=2,
    )
    values.update(overrides)
    setting = CalendarSetting(**values)
    db_session.add(setting)
    await db_session.commit()
    return setting.id


class TestHelpers:
    def test_working_days_use_iso_weekdays(self):
        assert is_working_day(date(2025, 3, 10), [1]) is True  # Monday
        assert is_working_day(date(2025, 3, 16), [1, 2, 3, 4, 5]) is False  # Sunday

    def test_zero_means_sunday(self):
        assert is_working_day(date(2025, 3, 16), [0]) is True

    def test_slots_must_end_by_closing(self):
        slots = list(day_slots(_template(daily_end_time=time(10, 15)), date(2025, 3, 10)))
        assert slots == [(time(9, 0), time(9, 30)), (time(9, 30), time(10, 0))]

    def test_slot_longer_than_day_yields_nothing(self):
        assert list(day_slots(_template(slot_duration_minutes=90), date(2025, 3, 10))) == []


class TestGenerate:
    @pytest.mark.asyncio
    async def test_generates_working_days_only(self, db_session, service):
        setting_id = await _calendar(db_session)

        # 2025-03-10 is a Monday; six days ahead reaches Sunday
        result = await service.generate(days_ahead=6)

        assert result.success is True
        assert result.created_count == 10
        assert {s.date for s in result.slots} == {date(2025, 3, d) for d in range(10, 15)}
        assert all(s.calendar_setting_id == setting_id for s in result.slots)
        assert all(s.max_capacity == 2 and s.occupied_count == 0 for s in result.slots)

    @pytest.mark.asyncio
    async def test_closed_dates_are_skipped(self, db_session, service):
        setting_id = await _calendar(db_session)
        db_session.add_all(
            [
                CalendarException(calendar_setting_id=setting_id, date=date(2025, 3, 11)),
                CalendarException(calendar_setting_id=None, date=date(2025, 3, 12)),
            ]
        )
        await db_session.commit()

        result = await service.generate(days_ahead=6)

        dates = {s.date for s in result.slots}
        assert date(2025, 3, 11) not in dates
        assert date(2025, 3, 12) not in dates
        assert result.created_count == 6

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, db_session, service):
        await _calendar(db_session)

        first = await service.generate(days_ahead=2)
        second = await service.generate(days_ahead=2)

        assert first.created_count == 6
        assert second.created_count == 0
        slots = await TimeslotRepository(db_session).list_for_date(date(2025, 3, 10))
        assert len(slots) == 2

    @pytest.mark.asyncio
    async def test_single_setting_and_unknown_setting(self, db_session, service):
        await _calendar(db_session, name="Branch A")
        other_id = await _calendar(db_session, name="Branch B", working_days=[1])

        only_other = await service.generate(days_ahead=0, calendar_setting_id=other_id)
        missing = await service.generate(days_ahead=0, calendar_setting_id=999)

        assert only_other.created_count == 2
        assert missing.success is False
        assert missing.message == "No calendar settings found"

    @pytest.mark.asyncio
    async def test_invalidates_cached_dates(self, db_session, service, mock_redis):
        await _calendar(db_session)

        await service.generate(days_ahead=1)

        keys = set(mock_redis.delete.call_args.args)
        assert keys == {
            "timeslots:available:2025-03-10",
            "timeslots:available:2025-03-11",
        }
