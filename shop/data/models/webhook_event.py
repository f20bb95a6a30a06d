from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from shop.data.database import Base


class WebhookEventModel(Base):
    """Provider events that were already applied, keyed by provider event id."""

    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True)
    event_id = Column(String(255), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False)
    intent_id = Column(String(255), nullable=True)
    received_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
