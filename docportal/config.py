from pathlib import Path
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import logging
from functools import lru_cache


class Settings(BaseSettings):
    """
    Centralized application configuration with type validation.
    Automatically reads variables from the environment (and a .env file).
    The instance is frozen: it is built once at startup and never mutated.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    TOKEN_STORAGE_FILE: str = ".dropbox.token"

    # --- General Settings ---
    STORAGE_PROVIDER: str = "azure"  # "azure", "dropbox" or "memory"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Path = Path("app.log")

    # --- Object Storage Settings ---
    STORAGE_ACCOUNT_NAME: Optional[str] = None
    STORAGE_ACCOUNT_KEY: Optional[str] = None
    STORAGE_ACCOUNT_URL: Optional[str] = None  # e.g. an Azurite endpoint
    STORAGE_CONTAINER_NAME: str  # container, or folder path for Dropbox
    STORAGE_TIMEOUT_SECONDS: int = Field(30, gt=0)

    # --- Upload Policy ---
    MAX_UPLOAD_SIZE_BYTES: int = Field(25 * 1024 * 1024, gt=0)  # 25 MB default

    # --- Dropbox Settings (optional) ---
    DROPBOX_APP_KEY: Optional[str] = None
    DROPBOX_APP_SECRET: Optional[str] = None
    DROPBOX_REFRESH_TOKEN_ENV: Optional[str] = Field(
        None, validation_alias="DROPBOX_REFRESH_TOKEN"
    )
    DROPBOX_UPLOAD_CHUNK_SIZE: int = Field(128 * 1024 * 1024, gt=0)  # 128 MB default

    # --- Admin Login (placeholder credential check) ---
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: Optional[str] = None
    SESSION_TTL_SECONDS: int = Field(8 * 60 * 60, gt=0)

    # --- HTTP Server ---
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = Field(8000, validation_alias=AliasChoices("PORT", "APP_PORT"))
    CORS_ORIGINS: str = "*"

    # --- Constants and Computed Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent

    @model_validator(mode="after")
    def validate_storage_provider_settings(self):
        provider = self.STORAGE_PROVIDER

        if provider == "azure":
            for key in ["STORAGE_ACCOUNT_NAME", "STORAGE_ACCOUNT_KEY", "STORAGE_CONTAINER_NAME"]:
                value = getattr(self, key)
                if not value or not str(value).strip():
                    raise ValueError(
                        f"{key} is required and cannot be empty when STORAGE_PROVIDER is 'azure'"
                    )

        elif provider == "dropbox":
            for key in ["DROPBOX_APP_KEY", "DROPBOX_APP_SECRET"]:
                value = getattr(self, key)
                if not value or not str(value).strip():
                    raise ValueError(
                        f"{key} is required and cannot be empty when STORAGE_PROVIDER is 'dropbox'"
                    )
            # An empty STORAGE_CONTAINER_NAME is allowed here: it means the Dropbox root.
            if not self.DROPBOX_REFRESH_TOKEN_ENV and not self.DROPBOX_REFRESH_TOKEN_FILE:
                raise ValueError(
                    f"Dropbox refresh token not found. Set DROPBOX_REFRESH_TOKEN or create {self.TOKEN_STORAGE_FILE}."
                )

        elif provider == "memory":
            if not self.STORAGE_CONTAINER_NAME.strip():
                raise ValueError("STORAGE_CONTAINER_NAME cannot be empty")
            logging.warning(
                "STORAGE_PROVIDER is 'memory'. Documents will not survive a restart."
            )

        else:
            raise ValueError(
                "Invalid STORAGE_PROVIDER. Must be 'azure', 'dropbox' or 'memory'."
            )

        if self.ADMIN_PASSWORD is None:
            logging.warning("ADMIN_PASSWORD is not set. Every login attempt will be rejected.")

        return self

    @property
    def DROPBOX_REFRESH_TOKEN_FILE(self) -> Optional[str]:
        """Refresh token read from the local token file, a fallback for local dev."""
        token_file = self.BASE_DIR / self.TOKEN_STORAGE_FILE
        if token_file.is_file():
            content = token_file.read_text().strip()
            if content:
                return content
        return None

    @property
    def cors_origins_list(self) -> List[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Returns a cached instance of the application settings.
    The first call to this function will initialize the settings; a missing
    required variable raises pydantic's ValidationError.
    """
    return Settings()
