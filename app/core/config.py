from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    # --- Project Settings ---
    PROJECT_NAME: str = "TruthBeacon"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # --- Security Settings ---
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ADMIN_ROLE: str = "admin"

    # --- Document Store Settings ---
    DATABASE_URL: str = "sqlite:///./truthbeacon.db"
    SETTINGS_COLLECTION: str = "settings"
    MAINTENANCE_DOC_ID: str = "maintenance_status"
    SITE_SETTINGS_DOC_ID: str = "site_settings"

    # --- Maintenance Gate Settings ---
    LOGIN_PATH: str = "/login"
    MAINTENANCE_RETRY_AFTER: int = 3600
    MAINTENANCE_BYPASS_PATHS: List[str] = ["/health", "/docs", "/openapi.json"]
    DEFAULT_MAINTENANCE_MESSAGE: str = "Service temporarily unavailable for maintenance"

    # --- Scheduler Settings ---
    DRIFT_CHECK_INTERVAL_MINUTES: int = 15

    # --- Rate Limiting ---
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_ADMIN_WRITE: str = "10/minute"

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")


settings = Settings()
