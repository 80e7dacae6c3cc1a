from typing import List, Optional

from sqlalchemy import select

from leadcrm.models.audit import AuditLog, Note
from leadcrm.repositories.base import BaseRepository
from leadcrm.schemas.common import PartyKind


class AuditLogRepository(BaseRepository):
    """Writes to the ``logs`` audit trail."""

    async def log(
        self,
        entity_type: str,
        entity_id,
        action: str,
        description: str,
        performed_by: Optional[str] = None,
    ) -> AuditLog:
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            description=description,
            performed_by=performed_by,
        )
        self._db.add(entry)
        await self._db.flush()
        return entry

    async def list_for_entity(self, entity_type: str, entity_id) -> List[AuditLog]:
        result = await self._db.execute(
            select(AuditLog)
            .where(
                AuditLog.entity_type == entity_type,
                AuditLog.entity_id == str(entity_id),
            )
            .order_by(AuditLog.id)
        )
        return list(result.scalars().all())


class NoteRepository(BaseRepository):
    """Lead and borrower notes."""

    async def add(
        self,
        kind: PartyKind,
        party_id: int,
        content: str,
        created_by: Optional[str] = None,
    ) -> Note:
        note = Note(
            party_type=PartyKind(kind).value,
            party_id=party_id,
            content=content,
            created_by=created_by,
        )
        self._db.add(note)
        await self._db.flush()
        return note

    async def list_for_party(self, kind: PartyKind, party_id: int) -> List[Note]:
        result = await self._db.execute(
            select(Note)
            .where(Note.party_type == PartyKind(kind).value, Note.party_id == party_id)
            .order_by(Note.id)
        )
        return list(result.scalars().all())
