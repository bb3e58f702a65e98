from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    DATABASE_URL: str = "sqlite+aiosqlite:///./dev.db"
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_MINUTES: int = 15
    REFRESH_TOKEN_DAYS: int = 30
    LOG_LEVEL: str = "INFO"

    # An Active session whose last heartbeat is older than this is treated
    # as orphaned by find_resumable. 0 means any Active session on load.
    ORPHAN_GRACE_SECONDS: int = 0
    DEFAULT_REST_SECONDS: int = 60

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

settings = Settings()
