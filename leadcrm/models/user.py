from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from leadcrm.core.timezone import utc_now
from leadcrm.models.base import Base


class User(Base):
    """Staff member (agent or admin) known to the CRM.

    The primary key is the identity provider's user id, so the same
    opaque string that arrives as the current actor on a request can be
    used directly as a foreign key.
    """

    __tablename__ = "users"
    id = Column(String(64), primary_key=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True)
    role = Column(String(30), nullable=False, default="agent", server_default="agent")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
