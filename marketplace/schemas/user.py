from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class OwnerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    avatar: str | None = None


class UserPublicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    avatar: str | None = None
    location: str | None = None
    bio: str | None = None
    created_at: datetime


class UserPrivateOut(UserPublicOut):
    email: EmailStr
    phone: str | None = None
    is_admin: bool


class UserProfileOut(UserPublicOut):
    listings_count: int


class ProfileUpdate(BaseModel):
    name: Name | None = None
    email: EmailStr | None = None
    avatar: str | None = Field(default=None, max_length=500)
    phone: str | None = Field(default=None, max_length=30)
    location: str | None = Field(default=None, max_length=200)
    bio: str | None = Field(default=None, max_length=500)


class PasswordUpdate(BaseModel):
    current_password: str
    new_password: str


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserPrivateOut


class UserProfileEnvelope(BaseModel):
    success: bool = True
    user: UserProfileOut


class UserListEnvelope(BaseModel):
    success: bool = True
    count: int
    users: list[UserPrivateOut]
