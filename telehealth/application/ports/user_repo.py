from typing import Protocol, Optional, List, Dict, Any
from datetime import datetime

ROLE_PATIENT = "patient"
ROLE_DOCTOR = "doctor"
ROLE_ADMIN = "admin"


class UserDto:
    def __init__(self, id: str, email: str, role: str, first_name: str, last_name: str,
                 profile: Dict[str, Any], is_active: bool, created_at: datetime,
                 phone: Optional[str] = None, avatar: Optional[str] = None,
                 average_rating: Optional[float] = None, review_count: int = 0,
                 hashed_password: Optional[str] = None):
        self.id = id
        self.email = email
        self.role = role
        self.first_name = first_name
        self.last_name = last_name
        self.profile = profile
        self.is_active = is_active
        self.created_at = created_at
        self.phone = phone
        self.avatar = avatar
        self.average_rating = average_rating
        self.review_count = review_count
        self.hashed_password = hashed_password

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_doctor(self) -> bool:
        return self.role == ROLE_DOCTOR

    @property
    def specialty(self) -> Optional[str]:
        return (self.profile or {}).get("specialty")


class UserRepository(Protocol):
    def get_by_email(self, email: str) -> Optional[UserDto]:
        ...

    def get_by_id(self, user_id: str) -> Optional[UserDto]:
        ...

    def create(self, email: str, hashed_password: str, role: str, first_name: str, last_name: str,
               phone: Optional[str], avatar: Optional[str], profile: Dict[str, Any]) -> UserDto:
        ...

    def list_by_role(self, role: str) -> List[UserDto]:
        ...
