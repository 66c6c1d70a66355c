# Models package (re-export feature modules for stable imports)
from .users.user import User
from .users.session import UserSession
from .health.appointment import Appointment

__all__ = [
    "User",
    "UserSession",
    "Appointment",
]
