from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any
import uuid

import pytest

from telehealth.application.services.auth_service import AuthService
from telehealth.application.ports.session_repo import SessionRepository, SessionDto
from telehealth.application.ports.user_repo import UserRepository, UserDto
from telehealth.exceptions import APIException, AuthenticationError
from telehealth.services.auth import create_jwt_token, create_refresh_token


class FakeUserRepo(UserRepository):
    def __init__(self):
        self.users: Dict[str, UserDto] = {}

    def get_by_email(self, email: str) -> Optional[UserDto]:
        return next((u for u in self.users.values() if u.email == email), None)

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        return self.users.get(user_id)

    def create(self, email: str, hashed_password: str, role: str, first_name: str, last_name: str,
               phone: Optional[str], avatar: Optional[str], profile: Dict[str, Any]) -> UserDto:
        user = UserDto(
            id=str(uuid.uuid4()),
            email=email,
            role=role,
            first_name=first_name,
            last_name=last_name,
            profile=profile,
            is_active=True,
            created_at=datetime.utcnow(),
            phone=phone,
            avatar=avatar,
            hashed_password=hashed_password,
        )
        self.users[user.id] = user
        return user

    def list_by_role(self, role: str) -> List[UserDto]:
        return [u for u in self.users.values() if u.role == role]


class FakeSessionRepo(SessionRepository):
    def __init__(self):
        self.sessions: Dict[str, SessionDto] = {}

    def create(self, user_id, token, refresh_token, expires_at):
        rec = SessionDto(
            id=str(uuid.uuid4()),
            user_id=user_id,
            token=token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            created_at=datetime.utcnow(),
        )
        self.sessions[rec.id] = rec
        return rec

    def get_by_token(self, token):
        return next((s for s in self.sessions.values() if s.token == token), None)

    def get_by_refresh_token(self, refresh_token):
        return next((s for s in self.sessions.values() if s.refresh_token == refresh_token), None)

    def update_tokens(self, session_id, token, refresh_token, expires_at):
        rec = self.sessions.get(session_id)
        if rec is None:
            return None
        rec.token, rec.refresh_token, rec.expires_at = token, refresh_token, expires_at
        return rec

    def delete(self, session_id):
        return self.sessions.pop(session_id, None) is not None


def make_service(users=None, sessions=None):
    return AuthService(user_repo=users or FakeUserRepo(), session_repo=sessions or FakeSessionRepo())


def test_register_normalizes_email_and_hashes_password():
    repo = FakeUserRepo()
    svc = make_service(repo)
    user = svc.register("  Alice@Example.com ", "s3cret-pass", "patient", "Alice", "Smith")
    assert user.email == "alice@example.com"
    assert user.hashed_password != "s3cret-pass"
    assert user.profile == {}


def test_register_rejects_duplicate_email():
    svc = make_service()
    svc.register("bob@example.com", "s3cret-pass", "doctor", "Bob", "Jones", profile={"specialty": "Dermatology"})
    with pytest.raises(APIException) as exc:
        svc.register("BOB@example.com", "other-pass", "patient", "Bob", "Jones")
    assert exc.value.status_code == 409


def test_register_rejects_admin_role():
    svc = make_service()
    with pytest.raises(APIException) as exc:
        svc.register("root@example.com", "s3cret-pass", "admin", "Root", "User")
    assert exc.value.status_code == 400


def test_login_issues_tokens_and_records_session():
    sessions = FakeSessionRepo()
    svc = make_service(sessions=sessions)
    user = svc.register("carol@example.com", "s3cret-pass", "patient", "Carol", "White")
    auth = svc.login("carol@example.com", "s3cret-pass")
    assert auth.user_id == user.id
    assert auth.role == "patient"
    stored = sessions.get_by_token(auth.access_token)
    assert stored.user_id == user.id
    assert stored.refresh_token == auth.refresh_token
    assert svc.get_current_user(auth.access_token).id == user.id


def test_login_with_wrong_password_fails():
    svc = make_service()
    svc.register("dan@example.com", "s3cret-pass", "patient", "Dan", "Brown")
    with pytest.raises(AuthenticationError):
        svc.login("dan@example.com", "wrong-pass")


def test_disabled_account_cannot_login():
    repo = FakeUserRepo()
    svc = make_service(repo)
    user = svc.register("eve@example.com", "s3cret-pass", "patient", "Eve", "Black")
    user.is_active = False
    with pytest.raises(AuthenticationError):
        svc.login("eve@example.com", "s3cret-pass")


def test_refresh_token_is_not_an_access_token():
    svc = make_service()
    user = svc.register("fay@example.com", "s3cret-pass", "patient", "Fay", "Green")
    with pytest.raises(AuthenticationError):
        svc.get_current_user(create_refresh_token({"sub": user.id}))
    with pytest.raises(AuthenticationError):
        svc.get_current_user("not-a-jwt")


def test_refresh_rotates_the_stored_session():
    sessions = FakeSessionRepo()
    svc = make_service(sessions=sessions)
    user = svc.register("gus@example.com", "s3cret-pass", "doctor", "Gus", "Gray", profile={"specialty": "ENT"})
    first = svc.login("gus@example.com", "s3cret-pass")

    second = svc.refresh(first.refresh_token)
    assert second.user_id == user.id
    assert second.access_token != first.access_token
    assert second.refresh_token != first.refresh_token
    assert len(sessions.sessions) == 1
    assert svc.session_for(second.access_token).user_id == user.id

    # The rotated-out pair no longer works
    with pytest.raises(AuthenticationError):
        svc.refresh(first.refresh_token)
    with pytest.raises(AuthenticationError):
        svc.session_for(first.access_token)


def test_refresh_rejects_access_tokens_and_expired_sessions():
    sessions = FakeSessionRepo()
    svc = make_service(sessions=sessions)
    svc.register("hal@example.com", "s3cret-pass", "patient", "Hal", "Reed")
    auth = svc.login("hal@example.com", "s3cret-pass")
    with pytest.raises(AuthenticationError):
        svc.refresh(auth.access_token)

    stored = sessions.get_by_refresh_token(auth.refresh_token)
    stored.expires_at = datetime.utcnow() - timedelta(minutes=1)
    with pytest.raises(AuthenticationError):
        svc.refresh(auth.refresh_token)
    assert sessions.sessions == {}


def test_logout_revokes_the_access_token():
    sessions = FakeSessionRepo()
    svc = make_service(sessions=sessions)
    svc.register("ivy@example.com", "s3cret-pass", "patient", "Ivy", "Lane")
    auth = svc.login("ivy@example.com", "s3cret-pass")
    other = svc.login("ivy@example.com", "s3cret-pass")

    svc.logout(auth.access_token)
    with pytest.raises(AuthenticationError):
        svc.session_for(auth.access_token)
    with pytest.raises(AuthenticationError):
        svc.refresh(auth.refresh_token)
    # Other logins of the same user stay signed in
    assert svc.session_for(other.access_token).user_id == auth.user_id
    svc.logout(auth.access_token)


def test_token_without_session_row_is_rejected():
    svc = make_service()
    user = svc.register("jon@example.com", "s3cret-pass", "patient", "Jon", "Hill")
    with pytest.raises(AuthenticationError):
        svc.session_for(create_jwt_token({"sub": user.id, "role": user.role}))
