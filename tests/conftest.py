import os

# Configure the app for tests before anything from edudash is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GRADING_MODE"] = "inline"
os.environ["GRADING_STEP_DELAY"] = "0"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["REALTIME_BACKEND"] = "local"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from edudash import models  # noqa: F401
from edudash.core.security import create_session_token, get_password_hash
from edudash.db.base import Base
from edudash.db.session import get_db
from edudash.main import app
from edudash.models.user import AuthAccount, User

TEST_DATABASE_URL = "sqlite://"
DEFAULT_PASSWORD = "Password123"


@pytest.fixture(scope="function")
def db_session():
    """In-memory database shared by the test and the app under test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(
    db,
    *,
    email: str,
    role: str,
    display_name: str | None = None,
    password: str = DEFAULT_PASSWORD,
    institution_id: str | None = None,
) -> User:
    account = AuthAccount(email=email, password_hash=get_password_hash(password))
    db.add(account)
    db.commit()
    db.refresh(account)

    user = User(
        id=account.id,
        email=email,
        display_name=display_name or f"Test {role.title()}",
        role=role,
        xp=0,
        level=1,
        badges=[],
        streak=0,
        institution_id=institution_id,
        account_type="individual",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_session_token(user.id)}"}


@pytest.fixture
def test_student(db_session):
    return make_user(db_session, email="student@example.com", role="student")


@pytest.fixture
def test_teacher(db_session):
    return make_user(db_session, email="teacher@example.com", role="teacher")


@pytest.fixture
def test_admin(db_session):
    return make_user(db_session, email="admin@example.com", role="admin")


@pytest.fixture
def test_dev(db_session):
    return make_user(db_session, email="dev@example.com", role="dev")


@pytest.fixture
def test_institution(db_session):
    return make_user(
        db_session,
        email="school@example.com",
        role="institution",
        institution_id="springfield-high",
    )
