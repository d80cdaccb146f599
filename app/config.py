from typing import Annotated, Any

from pydantic import (
    Field,
    HttpUrl,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    # database
    mysql_host: Annotated[str, Field(default="localhost"), "database"]
    mysql_port: Annotated[int, Field(default=3306), "database"]
    mysql_database: Annotated[str, Field(default="lacpa"), "database"]
    mysql_user: Annotated[str, Field(default="lacpa"), "database"]
    mysql_password: Annotated[str, Field(default="password"), "database"]
    database_url_override: Annotated[str | None, Field(default=None), "database"]
    db_pool_timeout_seconds: Annotated[float, Field(default=10.0), "database"]
    db_connect_timeout_seconds: Annotated[int, Field(default=5), "database"]
    redis_url: Annotated[str, Field(default="redis://127.0.0.1:6379"), "database"]
    auto_create_tables: Annotated[bool, Field(default=False), "database"]

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return f"mysql+aiomysql://{self.mysql_user}:{self.mysql_password}@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}"

    # jwt
    secret_key: Annotated[str, Field(default="your_jwt_secret_here", alias="jwt_secret_key"), "jwt"]
    algorithm: Annotated[str, Field(default="HS256", alias="jwt_algorithm"), "jwt"]
    access_token_expire_minutes: Annotated[int, Field(default=1440), "jwt"]
    jwt_issuer: Annotated[str, Field(default="lacpa"), "jwt"]

    # server
    host: Annotated[str, Field(default="0.0.0.0"), "server"]  # noqa: S104
    port: Annotated[int, Field(default=3000), "server"]
    debug: Annotated[bool, Field(default=False), "server"]
    cors_urls: Annotated[list[HttpUrl], Field(default=[]), "server"]
    server_url: Annotated[HttpUrl, Field(default=HttpUrl("http://localhost:3000")), "server"]
    frontend_url: Annotated[HttpUrl | None, Field(default=None), "server"]
    enable_rate_limit: Annotated[bool, Field(default=True), "server"]

    # logging
    log_level: Annotated[str, Field(default="INFO"), "logging"]

    # verification
    otp_length: Annotated[int, Field(default=6), "verification"]
    otp_expire_minutes: Annotated[int, Field(default=10), "verification"]
    reset_token_expire_minutes: Annotated[int, Field(default=15), "verification"]
    otp_resend_cooldown_seconds: Annotated[int, Field(default=60), "verification"]
    password_min_length: Annotated[int, Field(default=8), "verification"]

    # email
    email_provider: Annotated[str, Field(default="smtp"), "email"]
    email_provider_config: Annotated[dict[str, Any], Field(default_factory=dict), "email"]
    from_email: Annotated[str, Field(default="noreply@lacpa.org.lb"), "email"]
    from_name: Annotated[str, Field(default="LACPA"), "email"]
    email_delivery_timeout_seconds: Annotated[float, Field(default=10.0), "email"]

    # maintenance
    enable_cleanup_job: Annotated[bool, Field(default=True), "maintenance"]
    used_challenge_retention_days: Annotated[int, Field(default=7), "maintenance"]

    # monitoring
    sentry_dsn: Annotated[HttpUrl | None, Field(default=None), "monitoring"]

    @field_validator("otp_length", mode="after")
    @classmethod
    def validate_otp_length(cls, v: int) -> int:
        if not 4 <= v <= 10:
            raise ValueError("otp_length must be between 4 and 10")
        return v

    @field_validator("log_level", mode="after")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()


settings = Settings()  # pyright: ignore[reportCallIssue]
