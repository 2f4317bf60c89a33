from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = ""  # Empty means the local SQLite default

    # JWT Authentication
    JWT_SECRET_KEY: str = "your-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # Debug mode
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173", "http://localhost:5174"]

    # Application
    APP_NAME: str = "Weekboard Task Tracker"
    VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Week handling
    TIMEZONE: str = "UTC"  # Used to decide which ISO week "today" falls in
    BATCH_CONCURRENCY: int = 4  # Max tasks processed at once by rollover/migration

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
