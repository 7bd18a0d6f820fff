import pytest

from frontend.database import create_db_engine, create_session_factory, init_database
from frontend.repositories.chat_repository import ChatRepository


@pytest.fixture
def db_session():
    engine = create_db_engine("sqlite://")
    init_database(engine)
    session = create_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def repository(db_session):
    return ChatRepository(db_session)
