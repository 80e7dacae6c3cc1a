from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, select

from leadcrm.core.constants import ACTIVE_APPOINTMENT_STATUSES
from leadcrm.models.party import binding_for
from leadcrm.repositories.base import BaseRepository
from leadcrm.schemas.common import PartyKind


class AppointmentRepository(BaseRepository):
    """Queries over the appointment and junction tables of one party kind.

    ``AppointmentRepository(db, PartyKind.lead)`` works on
    ``appointments`` / ``appointment_timeslots``; the borrower variant on
    the ``borrower_*`` tables.
    """

    def __init__(self, db, kind: PartyKind = PartyKind.lead) -> None:
        super().__init__(db)
        self._binding = binding_for(kind)
        self._model = self._binding.appointment_model
        self._link = self._binding.link_model
        self._party_col = getattr(self._model, self._binding.party_fk)

    @property
    def party_fk(self) -> str:
        return self._binding.party_fk

    async def get_by_id(self, appointment_id: int):
        result = await self._db.execute(
            select(self._model)
            .where(self._model.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_for_party(self, party_id: int):
        """Return the upcoming (or legacy scheduled) appointment, if any."""
        result = await self._db.execute(
            select(self._model)
            .where(
                self._party_col == party_id,
                self._model.status.in_(ACTIVE_APPOINTMENT_STATUSES),
            )
            .order_by(self._model.start_datetime)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add(self, data: Dict[str, Any]):
        appointment = self._model(**data)
        self._db.add(appointment)
        await self._db.flush()
        return appointment

    async def add_links(self, appointment_id: int, timeslot_ids: Sequence[int]) -> None:
        """Insert junction rows; the first id is the primary slot."""
        for position, timeslot_id in enumerate(timeslot_ids):
            self._db.add(
                self._link(
                    appointment_id=appointment_id,
                    timeslot_id=timeslot_id,
                    is_primary=position == 0,
                )
            )
        await self._db.flush()

    async def get_timeslot_ids(self, appointment_id: int) -> List[int]:
        """Linked slot ids, primary first."""
        result = await self._db.execute(
            select(self._link.timeslot_id)
            .where(self._link.appointment_id == appointment_id)
            .order_by(self._link.is_primary.desc(), self._link.id)
        )
        return list(result.scalars().all())

    async def delete_links(self, appointment_id: int) -> None:
        await self._db.execute(
            delete(self._link)
            .where(self._link.appointment_id == appointment_id)
            .execution_options(synchronize_session=False)
        )

    async def delete(self, appointment_id: int) -> None:
        """Delete an appointment and its junction rows."""
        await self.delete_links(appointment_id)
        await self._db.execute(
            delete(self._model)
            .where(self._model.id == appointment_id)
            .execution_options(synchronize_session=False)
        )

    async def list_overdue(self, cutoff: datetime, limit: Optional[int] = None):
        """Active appointments that started before *cutoff*."""
        query = (
            select(self._model)
            .where(
                self._model.status.in_(ACTIVE_APPOINTMENT_STATUSES),
                self._model.start_datetime < cutoff,
            )
            .order_by(self._model.start_datetime, self._model.id)
        )
        if limit:
            query = query.limit(limit)
        result = await self._db.execute(query)
        return list(result.scalars().all())
