from typing import List, Optional
from pydantic import PostgresDsn, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Question Bank"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/v1"

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "questionbank"
    POSTGRES_PORT: int = 5432
    # Full URL override, e.g. "sqlite+aiosqlite:///./questionbank.db" for local runs
    DATABASE_URL: Optional[str] = None

    # Auth
    SECRET_KEY: str = "change-me-in-production"  # openssl rand -hex 32
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 8 # 8 days

    # Drafts stay locked this many seconds after the last lock grab; <= 0 turns locking off
    QUESTION_LOCK_TIMEOUT: int = 30 * 60

    # Licensing
    DEFAULT_LICENSE_SHORT_NAME: str = "CC BY 4.0"
    DEFAULT_LICENSE_LONG_NAME: str = "Creative Commons Attribution 4.0 International"
    DEFAULT_LICENSE_URL: str = "https://creativecommons.org/licenses/by/4.0/"

    @computed_field
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        ))

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")

settings = Settings()
