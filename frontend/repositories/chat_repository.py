from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from sqlalchemy import desc, func
from sqlalchemy.orm import Session
from .base import BaseRepository
from ..database.models import Conversation, Message

class ChatRepository:
    def __init__(self, db: Session):
        self.db = db
        self.conversation_repo = BaseRepository(Conversation, db)
        self.message_repo = BaseRepository(Message, db)

    # Conversation operations
    def create_conversation(self, title: str = "New Chat") -> Conversation:
        """Create a new conversation"""
        return self.conversation_repo.create(title=title)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation by ID"""
        return self.conversation_repo.get(conversation_id)

    def get_conversations(self, skip: int = 0, limit: int = 50) -> List[Conversation]:
        """Get all conversations ordered by most recent"""
        return (self.db.query(Conversation)
                .order_by(desc(Conversation.updated_at))
                .offset(skip)
                .limit(limit)
                .all())

    def update_conversation_title(self, conversation_id: str, title: str) -> Optional[Conversation]:
        """Update conversation title"""
        return self.conversation_repo.update(conversation_id, title=title)

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and all its messages"""
        return self.conversation_repo.delete(conversation_id)

    # Message operations
    def add_message(self, conversation_id: str, role: str, content: str,
                    attachments: Optional[List[Dict[str, Any]]] = None,
                    model: Optional[str] = None, source: Optional[str] = None,
                    is_final: bool = True) -> Message:
        """Append a message to a conversation"""
        position = (self.db.query(func.count(Message.id))
                    .filter(Message.conversation_id == conversation_id)
                    .scalar()) or 0

        message = self.message_repo.create(
            conversation_id=conversation_id,
            position=position,
            role=role,
            content=content,
            attachments=list(attachments or []),
            model=model,
            source=source,
            is_final=is_final,
        )

        self.conversation_repo.update(conversation_id, updated_at=datetime.now(timezone.utc))

        return message

    def finalize_message(self, message_id: str, content: str) -> Optional[Message]:
        """Store the full text of a typed-out assistant message and mark it final"""
        return self.message_repo.update(message_id, content=content, is_final=True)

    def get_message(self, message_id: str) -> Optional[Message]:
        return self.message_repo.get(message_id)

    def get_conversation_messages(self, conversation_id: str) -> List[Message]:
        """Get all messages for a conversation"""
        return (self.db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.position)
                .all())

