from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    APP_NAME: str = "OAuth2 Store"
    DEBUG: bool = False
    ENV: str = "development"

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------
    DATABASE_URL: str = "sqlite+aiosqlite:///./oauth2.db"
    DATABASE_POOL_PRE_PING: bool = True

    # ------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------
    HASHER_WORK_FACTOR: int = 10

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    # Datastore logging stays quiet unless the host application asks for it
    LOG_LEVEL: str = "WARNING"

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Singleton settings object (import this everywhere)
settings = Settings()
