from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Project Marketplace Engine"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True  # Set to False in production
    host: str = "0.0.0.0"
    port: int = 8000

    # Security
    log_user_emails: bool = False  # Set to False in production for GDPR compliance
    # CSP for production (no unsafe-inline, no external CDN) - set to empty string to use default
    csp_production: str = "default-src 'self'; frame-ancestors 'none'"

    # Database
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_ssl_mode: str = "prefer"  # disable, prefer, require, verify-ca, verify-full
    database_migrations_url: str | None = None
    run_migrations_on_startup: bool = False

    # Identity (tokens are issued by the identity collaborator, verified here)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "change-this-to-a-secure-random-string":
            raise ValueError(
                "JWT_SECRET_KEY must be changed from default value. "
                "Generate a secure secret with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        """Validate CORS origins - reject wildcards when credentials are used."""
        for origin in v:
            if origin == "*":
                raise ValueError(
                    "CORS wildcard '*' is not allowed when allow_credentials=True. "
                    "Specify explicit origins instead."
                )
        return v

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Metrics
    metrics_api_key: str | None = None  # If set, /metrics requires this key

    # Email (Resend)
    resend_api_key: str | None = None  # If not set, emails are logged but not sent
    email_from: str = "noreply@example.com"
    email_send_timeout_seconds: int = 10  # Timeout for email API calls
    app_url: str = "http://localhost:3000"  # Frontend URL for links in notifications

    # Projects
    default_currency: str = "USD"

    # Screening policy
    # Rejecting the last open candidate of an unassigned project is blocked unless enabled
    allow_reject_last_candidate: bool = False

    # Scoring weights (auto score components must sum to 1.0)
    scoring_skill_match_weight: float = 0.40
    scoring_rating_weight: float = 0.25
    scoring_on_time_weight: float = 0.20
    scoring_rework_weight: float = 0.15
    scoring_portfolio_weight: float = 0.30
    scoring_manual_weight: float = 0.40

    @field_validator("scoring_portfolio_weight", "scoring_manual_weight")
    @classmethod
    def validate_blend_weight(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("Blend weights must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_auto_score_weights(self) -> "Settings":
        total = (
            self.scoring_skill_match_weight
            + self.scoring_rating_weight
            + self.scoring_on_time_weight
            + self.scoring_rework_weight
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Auto score weights must sum to 1.0 (got {total:.4f})")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
