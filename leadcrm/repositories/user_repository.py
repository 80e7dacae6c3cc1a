from typing import List, Optional, Sequence

from sqlalchemy import select

from leadcrm.models.user import User
from leadcrm.repositories.base import BaseRepository


class UserRepository(BaseRepository):
    """Encapsulates every SQL query that touches the ``users`` table."""

    async def get_by_id(self, user_id: str) -> Optional[User]:
        result = await self._db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_many(self, user_ids: Sequence[str]) -> List[User]:
        if not user_ids:
            return []
        result = await self._db.execute(select(User).where(User.id.in_(list(user_ids))))
        return list(result.scalars().all())
