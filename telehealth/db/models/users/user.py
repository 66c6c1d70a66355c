# telehealth/db/models/users/user.py
from typing import Optional, Dict, Any
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    hashed_password: str = Field(max_length=255)
    role: str = Field(default="patient", max_length=10, index=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    phone: Optional[str] = Field(max_length=20, default=None)
    avatar: Optional[str] = Field(max_length=255, default=None)
    # Role specific fields (dob, blood_group / specialty, qualifications, ...)
    profile: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    average_rating: Optional[float] = Field(default=None)
    review_count: int = Field(default=0)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
