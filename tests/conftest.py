import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

import gradebook.models  # noqa: F401 - registers every table on Base.metadata
from gradebook.core.config import settings
from gradebook.core.database import Base, get_db
from gradebook.services.open_ended_grader import OpenEndedGrader
from gradebook.utils import deps as deps_utils
from tests.helpers.fakes import FakeTextEvaluationClient
import main

test_db_url = settings.TEST_DATABASE_URL or "sqlite:///./test.db"

@pytest.fixture(scope="session")
def database_engine():
    if test_db_url.startswith("sqlite"):
        engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(test_db_url)
    yield engine
    engine.dispose()
    if test_db_url.startswith("sqlite") and os.path.exists("./test.db"):
        os.remove("./test.db")

@pytest.fixture(scope="function")
def db_session(database_engine):
    Base.metadata.create_all(bind=database_engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()
        Base.metadata.drop_all(bind=database_engine)

@pytest.fixture
def fake_evaluation_client():
    return FakeTextEvaluationClient()

@pytest.fixture
def grader(fake_evaluation_client):
    return OpenEndedGrader(client=fake_evaluation_client, timeout=1.0, max_retries=2, retry_delay=0)

@pytest.fixture(scope="function")
def client(db_session, grader):
    main.app.dependency_overrides[get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_transactional_db] = lambda: db_session
    main.app.dependency_overrides[deps_utils.get_open_ended_grader] = lambda: grader
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()
