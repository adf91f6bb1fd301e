from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from models.enums import CompanySize, UserRole


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=256)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=8, max_length=256)
    role: Literal["COMPANY", "ORGANIZATION"]
    name: str = Field(min_length=2, max_length=100)

    # ORGANIZATION profile
    organization_type: str | None = Field(default=None, min_length=2, max_length=50)

    # COMPANY profile
    sector: str | None = Field(default=None, min_length=2, max_length=50)
    size: CompanySize | None = None
    location: str | None = Field(default=None, min_length=2, max_length=100)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @model_validator(mode="after")
    def _check_profile_fields(self):
        if self.role == "ORGANIZATION" and not self.organization_type:
            raise ValueError("organization_type is required for ORGANIZATION accounts")
        if self.role == "COMPANY":
            missing = [f for f in ("sector", "size", "location") if getattr(self, f) in (None, "")]
            if missing:
                raise ValueError(f"missing company fields: {', '.join(missing)}")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=8, max_length=256)


class MeResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: UserRole
    is_active: bool
    is_verified: bool
    organization_id: uuid.UUID | None = None
    company_id: uuid.UUID | None = None
    last_login_at: datetime | None = None
    created_at: datetime


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: MeResponse
