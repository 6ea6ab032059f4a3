from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from tripledger.schemas.base import CamelModel


class UserOut(CamelModel):
    id: int
    username: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    email: Optional[str] = None
    bio: Optional[str] = None
    created_at: Optional[datetime] = None


class RegisterRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    email: Optional[EmailStr] = None
    phone_number: str = ""


class LoginRequest(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AuthResponse(CamelModel):
    user: UserOut
    token: str


class ProfileUpdate(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = ""
    phone_number: str = ""
    email: EmailStr
    bio: Optional[str] = None


class PasswordChange(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)
