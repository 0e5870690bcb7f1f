import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import os

# Ensure tests always use HTTP-friendly cookies regardless of local config.yaml.
os.environ["COUNCIL_SECURE_COOKIES"] = "false"

from app.database import Base, get_db
from app.main import app
from app.models.user import User, UserRole
from app.utils.identifiers import generate_user_id
from app.utils.security import get_password_hash

CONTROLLER_LOGIN = "controller"
SECRETARY_LOGIN = "secretary"
MEMBER_LOGIN = "member"
TEST_PASSWORD = "Council@123!"


@pytest.fixture(scope="session")
def password_hash() -> str:
    # bcrypt is slow; hash once for every fixture user.
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture(scope="function")
def db_engine():
    """
    A private in-memory database per test.

    Stores commit and roll back on their own, so tests get a fresh engine
    instead of an outer transaction.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Provides a session on the test engine and overrides the app's get_db."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()

    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db

    try:
        yield db
    finally:
        db.close()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db_session: Session, password_hash: str):
    """Factory creating committed council members."""

    def _make_user(
        login: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.MEMBER,
        is_controller: bool = False,
        email_notifications: bool = True,
        email: str = None,
    ) -> User:
        user = User(
            user_id=generate_user_id(db_session, first_name, last_name),
            email=email or f"{login}@council.example.edu",
            login=login,
            hashed_password=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            is_controller=is_controller,
            email_notifications=email_notifications,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def controller_user(make_user) -> User:
    return make_user(
        CONTROLLER_LOGIN, "Chitra", "Rao", role=UserRole.CONTROLLER, is_controller=True
    )


@pytest.fixture
def secretary_user(make_user) -> User:
    return make_user(SECRETARY_LOGIN, "Asha", "Patil", role=UserRole.SECRETARY)


@pytest.fixture
def president_user(make_user) -> User:
    return make_user("president", "Rohan", "Mehta", role=UserRole.PRESIDENT)


@pytest.fixture
def member_user(make_user) -> User:
    return make_user(MEMBER_LOGIN, "Kabir", "Shah")


def login(client: TestClient, username: str, password: str = TEST_PASSWORD):
    response = client.post(
        "/api/auth/token", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.text
    return response


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, controller_user: User):
    """
    A TestClient logged in as the controller. The TestClient keeps the
    access_token cookie for subsequent requests.
    """
    login(client, CONTROLLER_LOGIN)
    yield client


@pytest.fixture(scope="function")
def secretary_client(client: TestClient, secretary_user: User):
    login(client, SECRETARY_LOGIN)
    yield client


@pytest.fixture(scope="function")
def member_client(client: TestClient, member_user: User):
    login(client, MEMBER_LOGIN)
    yield client


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def login_as(client: TestClient):
    """Log the shared client in as another account."""

    def _login_as(username: str, password: str = TEST_PASSWORD):
        return login(client, username, password)

    return _login_as
