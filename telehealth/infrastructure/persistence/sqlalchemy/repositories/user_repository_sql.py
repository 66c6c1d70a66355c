from typing import Optional, List, Dict, Any
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_repo import UserRepository, UserDto

class SqlUserRepository(UserRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, user: User) -> UserDto:
        return UserDto(
            id=user.id,
            email=user.email,
            role=user.role,
            first_name=user.first_name,
            last_name=user.last_name,
            profile=dict(user.profile or {}),
            is_active=bool(user.is_active),
            created_at=user.created_at,
            phone=user.phone,
            avatar=user.avatar,
            average_rating=user.average_rating,
            review_count=user.review_count or 0,
            hashed_password=user.hashed_password,
        )

    def get_by_email(self, email: str) -> Optional[UserDto]:
        user = self.session.exec(select(User).where(User.email == email)).first()
        return self._to_dto(user) if user else None

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        user = self.session.get(User, user_id)
        return self._to_dto(user) if user else None

    def create(self, email: str, hashed_password: str, role: str, first_name: str, last_name: str,
               phone: Optional[str], avatar: Optional[str], profile: Dict[str, Any]) -> UserDto:
        user = User(
            email=email,
            hashed_password=hashed_password,
            role=role,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            avatar=avatar,
            profile=profile,
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return self._to_dto(user)

    def list_by_role(self, role: str) -> List[UserDto]:
        users = self.session.exec(
            select(User)
            .where(User.role == role)
            .where(User.is_active == True)  # noqa: E712
            .order_by(User.last_name, User.first_name)
        ).all()
        return [self._to_dto(u) for u in users]
