from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8")

    database_url: str

    # Auth
    jwt_secret_key: str = Field(
        validation_alias=AliasChoices("jwt_secret_key", "jwt_secret", "JWT_SECRET_KEY", "JWT_SECRET")
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias=AliasChoices("jwt_algorithm", "JWT_ALGORITHM"))
    access_token_expire_minutes: int = Field(
        default=480,
        validation_alias=AliasChoices("access_token_expire_minutes", "ACCESS_TOKEN_EXPIRE_MINUTES"),
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=16,
        validation_alias=AliasChoices("bcrypt_rounds", "BCRYPT_ROUNDS"),
    )

    cookie_samesite: str = Field(
        default="lax",
        validation_alias=AliasChoices("cookie_samesite", "COOKIE_SAMESITE"),
    )

    allow_signup: bool = Field(
        default=True,
        validation_alias=AliasChoices("allow_signup", "ALLOW_SIGNUP"),
    )

    # Optional bootstrap: seed an initial superadmin.
    # Only used if BOTH email + password are provided.
    seed_superadmin_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("seed_superadmin_email", "SEED_SUPERADMIN_EMAIL"),
    )
    seed_superadmin_password: str | None = Field(
        default=None,
        validation_alias=AliasChoices("seed_superadmin_password", "SEED_SUPERADMIN_PASSWORD"),
    )
    auto_create_schema: bool = Field(
        default=True,
        validation_alias=AliasChoices("auto_create_schema", "AUTO_CREATE_SCHEMA"),
    )

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    log_level: str | None = Field(default=None, validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )

    # Documents
    upload_dir: str = Field(
        default=str(BACKEND_DIR / "uploads"),
        validation_alias=AliasChoices("upload_dir", "UPLOAD_DIR"),
    )
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices("max_upload_bytes", "MAX_UPLOAD_BYTES"),
    )

    # Workflow
    # - false: any application status may be overwritten with any other (legacy behaviour)
    # - true: DRAFT -> SUBMITTED -> UNDER_REVIEW -> APPROVED/REJECTED, terminal states locked
    strict_status_transitions: bool = Field(
        default=False,
        validation_alias=AliasChoices("strict_status_transitions", "STRICT_STATUS_TRANSITIONS"),
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("cookie_samesite")
    @classmethod
    def _normalize_cookie_samesite(cls, v: str) -> str:
        v = (v or "lax").strip().lower()
        if v not in {"lax", "strict", "none"}:
            raise ValueError("COOKIE_SAMESITE must be 'lax', 'strict', or 'none'")
        return v

    @field_validator("seed_superadmin_email")
    @classmethod
    def _normalize_seed_superadmin_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    @field_validator("seed_superadmin_password")
    @classmethod
    def _normalize_seed_superadmin_password(cls, v: str | None) -> str | None:
        if v is None:
            return None
        # Intentionally do not strip whitespace here: passwords can contain spaces.
        return v or None


settings = Settings()
