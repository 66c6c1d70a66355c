from fastapi import APIRouter, Depends
import logging

from ..schemas.auth.auth import RegisterRequest, LoginRequest, LoginResponse, RefreshRequest
from ..schemas.common.common import MessageResponse
from ..schemas.users.user import UserResponse
from ..application.services.auth_service import AuthService, AuthSession
from .deps import get_auth_service, get_current_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    user = auth_service.register(
        email=payload.email,
        password=payload.password,
        role=payload.role,
        first_name=payload.first_name,
        last_name=payload.last_name,
        profile=payload.profile,
        phone=payload.phone,
        avatar=payload.avatar,
    )
    return UserResponse.from_dto(user)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    return _token_response(auth_service.login(payload.email, payload.password))


@router.post("/refresh", response_model=LoginResponse)
def refresh(
    payload: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    return _token_response(auth_service.refresh(payload.refresh_token))


@router.post("/logout", response_model=MessageResponse)
def logout(
    auth_session: AuthSession = Depends(get_current_session),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.logout(auth_session.access_token)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserResponse)
def me(auth_session: AuthSession = Depends(get_current_session)):
    return UserResponse.from_dto(auth_session.user)


def _token_response(auth_session: AuthSession) -> LoginResponse:
    return LoginResponse(
        access_token=auth_session.access_token,
        refresh_token=auth_session.refresh_token,
        expires_at=auth_session.expires_at,
        user=UserResponse.from_dto(auth_session.user),
    )
