from pydantic import BaseModel, EmailStr, Field

from marketplace.schemas.user import Name, UserPrivateOut


class RegisterIn(BaseModel):
    name: Name
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class AuthOut(BaseModel):
    success: bool = True
    user: UserPrivateOut
    token: str
