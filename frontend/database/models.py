import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.orm import relationship
from .database import Base

def _new_id() -> str:
    return uuid.uuid4().hex

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(String(32), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False, default="New Chat")
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Relationship with messages
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan",
                            order_by="Message.position")

    def __repr__(self):
        return f"<Conversation(id={self.id}, title='{self.title}')>"

class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True, default=_new_id)
    conversation_id = Column(String(32), ForeignKey("conversations.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # Order within the conversation
    role = Column(String(20), nullable=False)  # 'user' or 'assistant'
    content = Column(Text, nullable=False, default="")
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
    attachments = Column(JSON, nullable=False, default=list)  # [{name, type, size}]
    model = Column(String(100), nullable=True)
    source = Column(String(20), nullable=True)
    is_final = Column(Boolean, nullable=False, default=True)

    # Relationship with conversation
    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<Message(id={self.id}, role='{self.role}', conversation_id={self.conversation_id})>"

    def to_dict(self):
        """Convert message to dictionary for the UI"""
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "attachments": list(self.attachments or []),
            "model": self.model,
            "source": self.source,
            "is_final": self.is_final,
        }
