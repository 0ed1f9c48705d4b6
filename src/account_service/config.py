from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.user import UserAccount


class Settings(BaseSettings):
    """
    Process-wide configuration, read from environment variables and an
    optional `.env` file in the working directory.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Document store
    MONGO_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "trademinutes"
    USERS_COLLECTION: str = UserAccount.collection_name
    STORE_TIMEOUT_SECONDS: float = 5.0
    STORE_LIST_TIMEOUT_SECONDS: float = 10.0

    # Credentials
    JWT_SECRET: str = ""
    TOKEN_TTL_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12

    # Account rules
    STARTING_CREDITS: int = 200

    # Image hosting
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_FOLDER: str = "trademinutes"
    IMAGE_HOST_TIMEOUT_SECONDS: float = 10.0
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    # Logging
    AUDIT_LOG_PATH: Path = Path("logs/account_audit.log")
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.CLOUDINARY_CLOUD_NAME
            and self.CLOUDINARY_API_KEY
            and self.CLOUDINARY_API_SECRET
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
