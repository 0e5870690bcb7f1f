from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.auth.auth import ROLE_PERMISSIONS, has_permission
from app.data.user_manager import UserManager
from app.models.user import UserRole
from app.schemas.schemas import Permission

REGISTRATION = {
    "login": "founder",
    "email": "founder@council.example.edu",
    "password": "Founder@123!",
    "first_name": "Priya",
    "last_name": "Desai",
    "department": "Mechanical",
}


def test_role_permissions():
    """Every role can view; only office bearers edit; only controllers delete."""
    for role in UserRole:
        assert Permission.VIEW_MEETING in ROLE_PERMISSIONS[role]
        assert Permission.VIEW_MEMBERS in ROLE_PERMISSIONS[role]
    assert Permission.CREATE_MEETING in ROLE_PERMISSIONS[UserRole.PRESIDENT]
    assert Permission.RECORD_MINUTES not in ROLE_PERMISSIONS[UserRole.PRESIDENT]
    assert Permission.RECORD_MINUTES in ROLE_PERMISSIONS[UserRole.SECRETARY]
    assert Permission.ARCHIVE_MEETING in ROLE_PERMISSIONS[UserRole.SECRETARY]
    assert Permission.DELETE_MEETING not in ROLE_PERMISSIONS[UserRole.SECRETARY]
    assert Permission.MANAGE_ARCHIVES not in ROLE_PERMISSIONS[UserRole.SECRETARY]
    assert Permission.MANAGE_ARCHIVES not in ROLE_PERMISSIONS[UserRole.PRESIDENT]
    assert ROLE_PERMISSIONS[UserRole.CONTROLLER] == set(Permission)


def test_has_permission():
    assert has_permission(UserRole.CONTROLLER, Permission.DELETE_MEETING)
    assert has_permission(UserRole.PRESIDENT, Permission.PUBLISH_MINUTES)
    assert not has_permission(UserRole.MEMBER, Permission.CREATE_MEETING)
    assert not has_permission(UserRole.TREASURER, Permission.UPDATE_MEETING)


def test_first_registration_becomes_controller(client: TestClient, db_session: Session):
    response = client.post("/api/auth/register", json=REGISTRATION)
    assert response.status_code == 201, response.text

    second = dict(REGISTRATION, login="second", email="second@council.example.edu")
    response = client.post("/api/auth/register", json=second)
    assert response.status_code == 201

    manager = UserManager()
    manager.set_db(db_session)
    founder = manager.get_user_by_login("founder")
    assert founder.role == UserRole.CONTROLLER.value
    assert founder.is_controller is True
    assert founder.department == "Mechanical"
    assert manager.get_user_by_login("second").role == UserRole.MEMBER.value


def test_duplicate_registration_rejected(client: TestClient):
    assert client.post("/api/auth/register", json=REGISTRATION).status_code == 201
    response = client.post("/api/auth/register", json=REGISTRATION)
    assert response.status_code == 400


def test_login_sets_cookie_and_returns_token(client: TestClient, secretary_user):
    response = client.post(
        "/api/auth/token",
        json={"username": secretary_user.login, "password": "Council@123!"},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["login_successful"] is True
    assert data["role"] == UserRole.SECRETARY.value
    assert data["access_token"]
    assert "access_token" in response.cookies

    cookie_value = response.cookies["access_token"]
    if cookie_value.startswith('"') and cookie_value.endswith('"'):
        cookie_value = cookie_value[1:-1]
    assert cookie_value.startswith("Bearer ")


def test_login_by_email(client: TestClient, secretary_user):
    response = client.post(
        "/api/auth/token",
        json={"username": secretary_user.email, "password": "Council@123!"},
    )
    assert response.status_code == 200


def test_invalid_login(client: TestClient, secretary_user):
    response = client.post(
        "/api/auth/token",
        json={"username": secretary_user.login, "password": "wrongpassword"},
    )
    assert response.status_code == 401


def test_inactive_user_cannot_login(client: TestClient, db_session: Session, member_user):
    member_user.is_active = False
    db_session.commit()
    response = client.post(
        "/api/auth/token",
        json={"username": member_user.login, "password": "Council@123!"},
    )
    assert response.status_code == 401


def test_me_and_logout(member_client: TestClient, member_user):
    response = member_client.get("/api/auth/me")
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == member_user.user_id
    assert body["role"] == "member"
    assert body["meetings_attended"] == 0

    response = member_client.post("/api/auth/logout")
    assert response.status_code == 200
    member_client.cookies.clear()
    assert member_client.get("/api/auth/me").status_code == 401


def test_invalid_token_rejected(client: TestClient):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
