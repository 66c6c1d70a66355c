from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class SessionDto:
    id: str
    user_id: str
    token: str
    refresh_token: str
    expires_at: datetime
    created_at: datetime


class SessionRepository:
    def create(self, user_id: str, token: str, refresh_token: str, expires_at: datetime) -> SessionDto:
        ...

    def get_by_token(self, token: str) -> Optional[SessionDto]:
        ...

    def get_by_refresh_token(self, refresh_token: str) -> Optional[SessionDto]:
        ...

    def update_tokens(self, session_id: str, token: str, refresh_token: str, expires_at: datetime) -> Optional[SessionDto]:
        ...

    def delete(self, session_id: str) -> bool:
        ...
