import uuid
from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, String

from accountability.db.base import Base
from accountability.utils.timezone import utcnow


def default_user_settings() -> Dict[str, Any]:
    return {"notifications": {"email": True, "sms": False}}


class User(Base):
    """Owner of goals and reminders; only the fields the reminder pipeline reads"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, nullable=True)
    settings = Column(JSON, nullable=False, default=default_user_settings)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def notifications_enabled(self, channel: str) -> bool:
        """Live notification preference for a channel (email, sms)."""
        notifications = (self.settings or {}).get("notifications") or {}
        return bool(notifications.get(channel, False))
