"""SQLAlchemy model for the message log."""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.sql import expression

from app.infrastructure.database import Base
from app.utils import now_in_app_naive_datetime


class MessageModel(Base):
    """Database representation of a directed message."""

    __tablename__ = "message"
    __table_args__ = (
        Index("ix_message_sender_created", "sender_id", "created_at"),
        Index("ix_message_recipient_created", "recipient_id", "created_at"),
    )

    id = Column(String(36), primary_key=True)
    sender_id = Column(String(64), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    related_entity_id = Column(String(64), nullable=True, index=True)
    subject = Column(String(255), nullable=True)
    content = Column(Text, nullable=False)
    message_type = Column(String(30), nullable=False, default="general")
    priority = Column(String(10), nullable=False, default="normal")
    is_read = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    read_at = Column(DateTime(), nullable=True)
    deleted_at = Column(DateTime(), nullable=True)


__all__ = ["MessageModel"]
