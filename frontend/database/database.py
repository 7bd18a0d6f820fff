import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DATA_DIR = os.getenv(
    "STUDEX_DATA_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))), "data"),
)

# SQLite database URL, local to the chat client
SQLITE_DATABASE_URL = f"sqlite:///{os.path.join(DATA_DIR, 'studex_chats.db')}"

# Base class for models
Base = declarative_base()

def create_db_engine(database_url: str = SQLITE_DATABASE_URL, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection so every session sees the same data"""
    if database_url == "sqlite://" or database_url.endswith(":memory:"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

    if database_url.startswith("sqlite:///"):
        os.makedirs(os.path.dirname(database_url.replace("sqlite:///", "")) or ".", exist_ok=True)

    return create_engine(
        database_url,
        connect_args={"check_same_thread": False},
        echo=echo,
    )

def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

def init_database(engine: Engine) -> None:
    """Initialize database tables"""
    # Models must be imported so their tables are registered on Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized at: %s", engine.url)

def open_session(database_url: str = SQLITE_DATABASE_URL) -> Session:
    """Create the tables if needed and return a session on them"""
    engine = create_db_engine(database_url)
    init_database(engine)
    return create_session_factory(engine)()
