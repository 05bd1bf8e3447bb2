"""Request/response contracts for registration, login and OTP."""

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.profile import MeResponse

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("The email field must be a valid email address.")
    return value


class RegisterRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)
    username: str = Field(min_length=1, max_length=255)
    email: str = Field(max_length=255)
    mobile: str = Field(min_length=5, max_length=32)
    password: str = Field(min_length=8, max_length=128)
    terms_accepted: bool = False

    # Location captured on the sign-up screen
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    city: Optional[str] = Field(default=None, max_length=255)
    state: Optional[str] = Field(default=None, max_length=255)
    country: Optional[str] = Field(default=None, max_length=255)
    continent: Optional[str] = Field(default=None, max_length=100)

    # Optional proof that the email/mobile was verified
    otp_code: Optional[str] = Field(default=None, min_length=6, max_length=6)
    channel: Optional[Literal["email", "mobile"]] = None
    target: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("The username field is required.")
        return v

    @model_validator(mode="after")
    def otp_fields_together(self):
        if self.otp_code and not (self.channel and self.target):
            raise ValueError("channel and target are required when otp_code is sent.")
        return self


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1)


class OtpRequest(BaseModel):
    channel: Literal["email", "mobile"]
    target: str = Field(min_length=3, max_length=255)

    @model_validator(mode="after")
    def validate_target(self):
        if self.channel == "email":
            _check_email(self.target)
        return self


class OtpVerifyRequest(OtpRequest):
    code: str = Field(min_length=6, max_length=6)


class AuthResponse(BaseModel):
    user: MeResponse
    token: str


class OtpVerifyResponse(BaseModel):
    verified: bool
