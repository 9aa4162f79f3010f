import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional

# Load environment variables from .env file
load_dotenv()


def _optional_env(name: str) -> Optional[str]:
    value = (os.getenv(name, "") or "").strip().strip('"').strip("'")
    return value or None


class Settings(BaseSettings):
    # API Settings
    API_VERSION: str = os.getenv("API_VERSION", "v1")
    API_PREFIX: str = os.getenv("API_PREFIX", f"/api/{API_VERSION}")
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server Settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "3000"))
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Relay Settings
    RELAY_TIMEOUT_SECONDS: float = float(os.getenv("RELAY_TIMEOUT_SECONDS", "15"))
    RELAY_CHUNK_SIZE: int = int(os.getenv("RELAY_CHUNK_SIZE", str(64 * 1024)))
    RELAY_USER_AGENT: str = os.getenv("RELAY_USER_AGENT", "AudioLinkRelay/1.0")

    # Base address the front-end uses to route downloads through /download.
    # Empty means links point straight at their origin.
    RELAY_BASE_URL: str = (os.getenv("RELAY_BASE_URL", "") or "").strip().strip('"').strip("'")

    # Predefined links sources
    LINKS_FILE: Optional[str] = _optional_env("LINKS_FILE")
    LINKS_DIR: Optional[str] = _optional_env("LINKS_DIR")

    # Pre-built front-end assets served at "/"
    STATIC_DIR: Optional[str] = _optional_env("STATIC_DIR")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency that returns the process-wide settings."""
    return settings
