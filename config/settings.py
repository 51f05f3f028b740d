# config/settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Project settings.
    Values are read from environment variables or a .env file.
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Leave Ledger API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./leave.db"
    DB_CONNECT_RETRIES: int = 5
    DB_CONNECT_BACKOFF_SECONDS: float = 1.0

    # JWT (access/refresh secrets differ, and differ per role)
    JWT_ACCESS_SECRET: str = "change-me-user-access-secret"
    JWT_REFRESH_SECRET: str = "change-me-user-refresh-secret"
    JWT_ADMIN_ACCESS_SECRET: str = "change-me-admin-access-secret"
    JWT_ADMIN_REFRESH_SECRET: str = "change-me-admin-refresh-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    REFRESH_COOKIE_NAME: str = "refreshToken"
    REFRESH_COOKIE_SECURE: bool = False

    # Bootstrap admin
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    ADMIN_NAME: str = "Administrator"

    # Default allowances (also the caps of the legacy flat ledger)
    LEAVE_DEFAULT_ANNUAL: int = 10
    LEAVE_DEFAULT_SICK: int = 14
    LEAVE_DEFAULT_CASUAL: int = 5

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"

    @property
    def leave_defaults(self) -> dict:
        return {
            "annual": self.LEAVE_DEFAULT_ANNUAL,
            "sick": self.LEAVE_DEFAULT_SICK,
            "casual": self.LEAVE_DEFAULT_CASUAL,
        }


settings = Settings()
