from .database import Base, create_db_engine, create_session_factory, init_database, open_session
from .models import Conversation, Message

__all__ = ["Base", "create_db_engine", "create_session_factory", "init_database", "open_session",
           "Conversation", "Message"]
