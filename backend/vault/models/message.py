# vault/models/message.py

from sqlalchemy import Column, String, Text, DateTime, JSON
from vault.models.base import Base

class Message(Base):
    __tablename__ = "messages"

    # Millisecond timestamp string, strictly increasing per process
    id = Column(String(32), primary_key=True)

    type = Column(String(16), nullable=False)
    content = Column(Text, nullable=False, default="")
    user_id = Column(String(100), nullable=False, index=True)

    # File messages only. url holds the encoded payload (data URL) and is
    # never returned by list views.
    name = Column(String(255), nullable=True)
    url = Column(Text, nullable=True)
    shareable_url = Column(String(512), nullable=True)

    # Naive UTC; drives the TTL policy
    uploaded_at = Column(DateTime, nullable=False, index=True)

    device_user_agent = Column(String(512), nullable=False, default="Unknown")
    device_ip = Column(String(64), nullable=False, default="Unknown")

    # Viewer addresses; replaced wholesale on update so the change is tracked
    seen_by = Column(JSON, nullable=False, default=list)
