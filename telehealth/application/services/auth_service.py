from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging

from ..ports.user_repo import UserRepository, UserDto, ROLE_PATIENT, ROLE_DOCTOR
from ..ports.session_repo import SessionRepository
from ..ports.audit_logger import AuditLogger
from ...exceptions import APIException, AuthenticationError
from ...services.auth import (
    hash_password,
    verify_password,
    create_jwt_token,
    create_refresh_token,
    decode_jwt_token,
)

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = (ROLE_PATIENT, ROLE_DOCTOR)


@dataclass
class AuthSession:
    """An authenticated user together with the token it was issued."""
    user: UserDto
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role


@dataclass
class AuthService:
    user_repo: UserRepository
    session_repo: SessionRepository
    audit: Optional[AuditLogger] = None
    refresh_days: int = 30

    def register(self, email: str, password: str, role: str, first_name: str, last_name: str,
                 profile: Optional[Dict[str, Any]] = None, phone: Optional[str] = None,
                 avatar: Optional[str] = None) -> UserDto:
        if role not in SELF_REGISTER_ROLES:
            raise APIException(status_code=400, detail=f"Invalid role. Must be one of: {list(SELF_REGISTER_ROLES)}")
        email = email.strip().lower()
        if self.user_repo.get_by_email(email):
            raise APIException(status_code=409, detail="Email already registered")
        user = self.user_repo.create(
            email=email,
            hashed_password=hash_password(password),
            role=role,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            avatar=avatar,
            profile=profile or {},
        )
        logger.info(f"Registered {role} {user.id}")
        return user

    def login(self, email: str, password: str) -> AuthSession:
        user = self.user_repo.get_by_email(email.strip().lower())
        if not user or not user.hashed_password or not verify_password(password, user.hashed_password):
            self._audit("login", None, success=False)
            raise AuthenticationError("Invalid credentials")
        if not user.is_active:
            self._audit("login", user.id, success=False)
            raise AuthenticationError("Account is disabled")

        access_token, refresh_token, expires_at = self._issue_tokens(user)
        self.session_repo.create(user.id, access_token, refresh_token, expires_at)
        self._audit("login", user.id, success=True)
        return AuthSession(user=user, access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def refresh(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new token pair.

        The stored session is rotated in place, so the old refresh token and
        the access token issued with it stop working.
        """
        payload = decode_jwt_token(refresh_token)
        if not payload or payload.get("type") != "refresh":
            raise AuthenticationError("Invalid refresh token")
        stored = self.session_repo.get_by_refresh_token(refresh_token)
        if not stored or stored.user_id != payload.get("sub"):
            raise AuthenticationError("Session has been revoked")
        if stored.expires_at <= datetime.utcnow():
            self.session_repo.delete(stored.id)
            raise AuthenticationError("Session has expired")
        user = self.user_repo.get_by_id(stored.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        access_token, new_refresh, expires_at = self._issue_tokens(user)
        if not self.session_repo.update_tokens(stored.id, access_token, new_refresh, expires_at):
            raise AuthenticationError("Session has been revoked")
        self._audit("refresh", user.id, success=True)
        return AuthSession(user=user, access_token=access_token, refresh_token=new_refresh, expires_at=expires_at)

    def logout(self, access_token: str) -> None:
        stored = self.session_repo.get_by_token(access_token)
        if stored:
            self.session_repo.delete(stored.id)
            self._audit("logout", stored.user_id, success=True)

    def get_current_user(self, token: str) -> UserDto:
        payload = decode_jwt_token(token)
        if not payload:
            raise AuthenticationError("Invalid or expired token")
        if payload.get("type", "access") != "access":
            raise AuthenticationError("Invalid token type")
        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Invalid token: missing user ID")
        user = self.user_repo.get_by_id(user_id)
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")
        return user

    def session_for(self, token: str) -> AuthSession:
        user = self.get_current_user(token)
        stored = self.session_repo.get_by_token(token)
        if not stored or stored.user_id != user.id:
            raise AuthenticationError("Session has been revoked")
        return AuthSession(user=user, access_token=token, refresh_token=stored.refresh_token, expires_at=stored.expires_at)

    def _issue_tokens(self, user: UserDto) -> Tuple[str, str, datetime]:
        claims = {"sub": user.id, "role": user.role}
        access_token = create_jwt_token(claims)
        refresh_token = create_refresh_token(claims, days=self.refresh_days)
        return access_token, refresh_token, datetime.utcnow() + timedelta(days=self.refresh_days)

    def _audit(self, action: str, user_id: Optional[str], success: bool) -> None:
        if self.audit is not None:
            self.audit.log(action, user_id=user_id, success=success)
