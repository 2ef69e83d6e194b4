"""
Application settings, read from the environment or a local ``.env`` file.
"""
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration for the hotel backend."""

    APP_NAME: str = "Hotel Management Backend"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./hotel.db"
    SEED_SAMPLE_DATA: bool = False

    # Tokens
    SECRET_KEY: str = "CHANGE_THIS_SECRET_IN_REAL_PROJECT"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # Sessions and lockout
    SESSION_TIMEOUT_MINUTES: int = 30
    SESSION_WARNING_MINUTES: int = 5
    MAX_LOGIN_ATTEMPTS: int = 3
    LOCKOUT_MINUTES: int = 15

    # Rate limiting
    RATE_LIMIT: str = "60/minute"
    RATE_LIMIT_ENABLED: bool = True

    # Circuit breaker around booking writes
    BREAKER_FAIL_MAX: int = 3
    BREAKER_RESET_SECONDS: int = 60

    # Cancelling a checked-in stay keeps the room unless this is on
    RELEASE_ROOM_ON_CHECKED_IN_CANCEL: bool = False

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
