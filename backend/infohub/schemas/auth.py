from pydantic import EmailStr, Field
from typing import Optional

from infohub.schemas.common import CamelModel


class UserRegister(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, pattern=r'^\+?[0-9 ()-]{6,20}$')


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str = Field(..., min_length=8)


class OAuthCallbackRequest(CamelModel):
    code: str
    state: Optional[str] = None


class GoogleIdTokenRequest(CamelModel):
    credential: str


class UpgradeRequestCreate(CamelModel):
    requested_role: str
    reason: Optional[str] = Field(None, max_length=1000)
