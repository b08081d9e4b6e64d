import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from app.database import Base, get_db
from app.main import app

# Define a test database URL
TEST_DATABASE_URL = "sqlite:///:memory:"  # Use in-memory SQLite for tests
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session")
def create_test_tables():
    """Create all database tables once per session before tests run."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function")
def db_session(create_test_tables):  # Depends on table creation
    """
    Provides a transactional database session for a test.
    Rolls back changes after the test.
    Overrides the main app's get_db dependency.
    """
    connection = engine.connect()
    transaction = connection.begin()
    db = TestingSessionLocal(bind=connection)

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        transaction.rollback()
        connection.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session, tmp_path, monkeypatch):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def event_factory(client: TestClient):
    """Creates an event with participants through the API and returns their ids."""

    def _create(participants=None, **event_fields):
        payload = {"name": "General assembly"}
        payload.update(event_fields)
        response = client.post("/api/events", json=payload)
        assert response.status_code == 201, response.text
        event_id = response.json()["event_id"]
        ids = []
        for entry in participants or []:
            created = client.post(f"/api/events/{event_id}/participants", json=entry)
            assert created.status_code == 201, created.text
            ids.append(created.json()["participant_id"])
        return event_id, ids

    return _create


@pytest.fixture(scope="function")
def active_question(client: TestClient):
    """Creates and activates a question on an existing event."""

    def _create(event_id, **question_fields):
        payload = {"text": "Approve the annual budget?"}
        payload.update(question_fields)
        created = client.post(f"/api/events/{event_id}/questions", json=payload)
        assert created.status_code == 201, created.text
        question_id = created.json()["question_id"]
        activated = client.post(
            f"/api/events/{event_id}/questions/{question_id}/activate"
        )
        assert activated.status_code == 200, activated.text
        return question_id

    return _create
