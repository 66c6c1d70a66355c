from datetime import datetime
from typing import Optional
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import UserSession
from .....application.ports.session_repo import SessionRepository, SessionDto
from .....exceptions import StoreOperationError

logger = logging.getLogger(__name__)


class SqlSessionRepository(SessionRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: UserSession) -> SessionDto:
        return SessionDto(
            id=rec.id,
            user_id=rec.user_id,
            token=rec.token,
            refresh_token=rec.refresh_token,
            expires_at=rec.expires_at,
            created_at=rec.created_at,
        )

    def _first(self, query) -> Optional[SessionDto]:
        try:
            rec = self.session.exec(query).first()
        except SQLAlchemyError as e:
            logger.error(f"Error looking up session: {e}")
            raise StoreOperationError() from e
        return self._to_dto(rec) if rec else None

    def create(self, user_id: str, token: str, refresh_token: str, expires_at: datetime) -> SessionDto:
        rec = UserSession(user_id=user_id, token=token, refresh_token=refresh_token, expires_at=expires_at)
        try:
            self.session.add(rec)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error creating session for user {user_id}: {e}")
            raise StoreOperationError() from e
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get_by_token(self, token: str) -> Optional[SessionDto]:
        return self._first(select(UserSession).where(UserSession.token == token))

    def get_by_refresh_token(self, refresh_token: str) -> Optional[SessionDto]:
        return self._first(select(UserSession).where(UserSession.refresh_token == refresh_token))

    def update_tokens(self, session_id: str, token: str, refresh_token: str, expires_at: datetime) -> Optional[SessionDto]:
        rec = self.session.get(UserSession, session_id)
        if not rec:
            return None
        rec.token = token
        rec.refresh_token = refresh_token
        rec.expires_at = expires_at
        try:
            self.session.add(rec)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error rotating session {session_id}: {e}")
            raise StoreOperationError() from e
        self.session.refresh(rec)
        return self._to_dto(rec)

    def delete(self, session_id: str) -> bool:
        rec = self.session.get(UserSession, session_id)
        if not rec:
            return False
        try:
            self.session.delete(rec)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error deleting session {session_id}: {e}")
            raise StoreOperationError() from e
        return True
