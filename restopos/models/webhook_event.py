"""Stripe webhook event model for idempotency."""
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from restopos.database import Base, BigIntPK


class WebhookEvent(Base):
    """Log of processed Stripe webhook events, unique per dedupe key."""
    __tablename__ = 'webhook_events'

    RECEIVED = 'RECEIVED'
    PROCESSED = 'PROCESSED'
    IGNORED = 'IGNORED'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    event_type = Column(String(100), nullable=False, index=True)
    provider_event_id = Column(String(255))
    resource_id = Column(String(255), index=True)  # checkout session id
    payload_json = Column(JSON().with_variant(JSONB, 'postgresql'), nullable=False)
    dedupe_key = Column(String(64), nullable=False, unique=True)
    received_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True))
    status = Column(String(20), nullable=False, default=RECEIVED, index=True)

    def __repr__(self):
        return f"<WebhookEvent(type='{self.event_type}', resource_id='{self.resource_id}', status='{self.status}')>"

