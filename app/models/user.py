# app/models/user.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, EmailStr
from pymongo import IndexModel, ASCENDING, DESCENDING
from enum import Enum
from datetime import datetime, timezone

from .enum import BorrowerType


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    USER = "user"

class User(Document):
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    hashed_password: str
    disabled: bool = Field(default=False)
    role: UserRole = Field(default=UserRole.USER)

    # Borrower identity (students and employees borrow under their school/employee number)
    borrower_type: BorrowerType = Field(default=BorrowerType.USER)
    id_number: Optional[str] = Field(None, max_length=50)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("username", ASCENDING)], name="username_unique_index", unique=True),
            IndexModel([("email", ASCENDING)], name="email_unique_index", unique=True, sparse=True),
            IndexModel([("role", ASCENDING)], name="role_index"),
            IndexModel([("id_number", ASCENDING)], name="id_number_index", sparse=True),
            IndexModel([("updated_at", DESCENDING)], name="user_updated_at_index"),
        ]

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    # --- Pydantic Schemas ---
    class Response(BaseModel):
        id: str
        username: str
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        disabled: bool
        role: UserRole
        borrower_type: BorrowerType
        id_number: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            use_enum_values = True

    class AdminCreate(BaseModel):
        username: str = Field(..., min_length=3, max_length=50)
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        password: str = Field(..., min_length=8)
        role: UserRole = UserRole.USER
        borrower_type: BorrowerType = BorrowerType.USER
        id_number: Optional[str] = Field(None, max_length=50)
        disabled: bool = False
