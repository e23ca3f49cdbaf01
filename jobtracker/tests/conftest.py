import os
import tempfile
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

# Ensure tests always use SQLite to avoid requiring Postgres drivers
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_jobtracker.db")

from jobtracker import crud, models
from jobtracker.database import Base, get_db, get_session_factory
from jobtracker.main import app
from jobtracker.models import JobStatus, UserRole
from jobtracker.token import create_access_token


@pytest.fixture(scope="session")
def test_db_url():
    # Use a temporary SQLite file to persist across tests within a session
    db_fd, db_path = tempfile.mkstemp(prefix="test_jobtracker_", suffix=".db")
    os.close(db_fd)
    url = f"sqlite:///{db_path}"
    yield url
    try:
        os.remove(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture()
def test_engine(test_db_url):
    engine = create_engine(test_db_url, connect_args={"check_same_thread": False})
    # Create all tables
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    # Ensure file handles are released on Windows
    engine.dispose()


@pytest.fixture()
def session_factory(test_engine):
    return sessionmaker(bind=test_engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db_session, session_factory):
    # Override the dependency to use the test session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make(role=UserRole.JOB_SEEKER, email=None, **profile):
        counter["n"] += 1
        email = email or f"{role.value.lower()}{counter['n']}@example.com"
        profile.setdefault("first_name", role.value)
        profile.setdefault("last_name", str(counter["n"]))
        return crud.create_user(db_session, email, "password123", role=role, **profile)

    return _make


@pytest.fixture()
def seeker(make_user):
    return make_user(UserRole.JOB_SEEKER)


@pytest.fixture()
def other_seeker(make_user):
    return make_user(UserRole.JOB_SEEKER)


@pytest.fixture()
def recruiter(make_user):
    return make_user(UserRole.RECRUITER)


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture()
def make_job(db_session):
    def _make(title="Backend Engineer", company="Acme", status=JobStatus.OPEN, **fields):
        job = models.Job(title=title, company=company, status=status, **fields)
        return crud.save(db_session, job)

    return _make


@pytest.fixture()
def job(make_job):
    return make_job()


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.email)}"}

    return _headers
