from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from sqlalchemy.engine import URL, make_url

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    DATABASE_URL: str = Field(
        "postgresql+asyncpg://localhost:5432/quiz_db",
        description="Async SQLAlchemy connection string (postgresql+asyncpg://... or sqlite+aiosqlite://...)"
    )
    DB_USER: str = Field("postgres", description="Used when DATABASE_URL carries no username")
    DB_PASSWORD: str = Field("password", description="Used when DATABASE_URL carries no password")
    DB_CONNECT_TIMEOUT_SECONDS: float = 10.0
    DB_COMMAND_TIMEOUT_SECONDS: float = 30.0
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT_SECONDS: float = 30.0

    # Auth
    BCRYPT_ROUNDS: int = Field(10, ge=4, le=31)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Environment
    ENV: str = "production"  # development, staging, production
    DEBUG: bool = False

    @property
    def sqlalchemy_url(self) -> URL:
        """DATABASE_URL with the separate credentials filled in where it has none."""
        url = make_url(self.DATABASE_URL)
        if url.get_backend_name() == "sqlite":
            return url
        return url.set(
            username=url.username or self.DB_USER,
            password=url.password or self.DB_PASSWORD,
        )
