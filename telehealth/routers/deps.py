from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session
import logging

from ..core.config import Settings, get_settings
from ..db.session import get_session
from ..exceptions import AuthenticationError
from ..application.services.auth_service import AuthService, AuthSession
from ..application.services.appointments_service import AppointmentsService
from ..application.services.availability_service import AvailabilityService
from ..application.services.booking_workflow import Pricing
from ..application.services.doctors_service import DoctorsService
from ..infrastructure.audit.std_logger import StdAuditLogger
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from ..infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from ..infrastructure.persistence.sqlalchemy.repositories.user_repository_sql import SqlUserRepository

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)
audit_logger = StdAuditLogger()


def get_auth_service(session: Session = Depends(get_session), settings: Settings = Depends(get_settings)) -> AuthService:
    return AuthService(
        user_repo=SqlUserRepository(session),
        session_repo=SqlSessionRepository(session),
        audit=audit_logger,
        refresh_days=settings.REFRESH_TOKEN_EXPIRE_DAYS,
    )


def get_appointments_repo(session: Session = Depends(get_session)) -> SqlAppointmentsRepository:
    return SqlAppointmentsRepository(session)


def get_appointments_service(repo: SqlAppointmentsRepository = Depends(get_appointments_repo)) -> AppointmentsService:
    return AppointmentsService(repo=repo, audit=audit_logger)


def get_availability_service(
    repo: SqlAppointmentsRepository = Depends(get_appointments_repo),
    settings: Settings = Depends(get_settings),
) -> AvailabilityService:
    return AvailabilityService.from_settings(repo, settings)


def get_doctors_service(session: Session = Depends(get_session)) -> DoctorsService:
    return DoctorsService(user_repo=SqlUserRepository(session))


def get_pricing(settings: Settings = Depends(get_settings)) -> Pricing:
    return Pricing(
        consultation_fee=settings.CONSULTATION_FEE,
        video_platform_fee=settings.VIDEO_PLATFORM_FEE,
        currency=settings.PAYMENT_CURRENCY,
    )


def get_current_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthSession:
    token = None
    if credentials and credentials.credentials:
        token = credentials.credentials
    else:
        # Fallback to cookie
        token = request.cookies.get("access_token")
    if not token:
        raise AuthenticationError("Authentication required")
    auth_session = auth_service.session_for(token)
    logger.debug(f"Authenticated user ID: {auth_session.user_id}")
    return auth_session
