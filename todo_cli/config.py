from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

from todo_cli.errors import ConfigError

load_dotenv()

DEFAULT_JWT_SECRET = "default-secret-change-in-production"

SUPPORTED_URL_PREFIXES = (
    "postgresql+asyncpg://",
    "sqlite+aiosqlite://",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str | None = None

    # Security
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    BCRYPT_ROUNDS: int = 12

    # Local state
    SESSION_DIR: Path = Path(".todo-cli")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "WARNING"

    @property
    def async_database_url(self) -> str | None:
        """The configured URL with the async driver filled in for Postgres."""
        url = self.database_url
        if not url:
            return None
        # Ensure we use the async driver
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    def validate_for_runtime(self) -> None:
        url = self.async_database_url
        if not url:
            raise ConfigError("DATABASE_URL is not set")
        if not url.startswith(SUPPORTED_URL_PREFIXES):
            raise ConfigError("DATABASE_URL must start with 'postgres://', 'postgresql://' or 'sqlite+aiosqlite://'")
        if self.is_production() and self.JWT_SECRET == DEFAULT_JWT_SECRET:
            raise ConfigError("JWT_SECRET is not set in production")


settings = Settings()


def get_settings() -> Settings:
    return settings
