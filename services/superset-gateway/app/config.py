"""Configuration management for Superset Gateway"""
from typing import List, Optional
from pydantic_settings import BaseSettings

from .exceptions import MissingCredentialsError
from .models import SupersetCredentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Service Configuration
    SERVICE_NAME: str = "Superset Gateway"
    SERVICE_HOST: str = "0.0.0.0"
    SERVICE_PORT: int = 8000
    SERVICE_VERSION: str = "1.0.0"

    # Deployment labels (reported by the root endpoint only)
    NODE_ENV: str = "development"
    WORKER_LABEL: Optional[str] = None
    API_KEY: Optional[str] = None

    # Superset Configuration
    SUPERSET_BASE_URL: Optional[str] = None
    SUPERSET_USERNAME: Optional[str] = None
    SUPERSET_PASSWORD: Optional[str] = None
    SUPERSET_TIMEOUT: float = 30.0  # seconds, applied to every upstream call
    SUPERSET_SESSION_TTL: int = 0  # seconds; 0 re-authenticates on every call

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    def missing_superset_variables(self) -> List[str]:
        """Names of the Superset variables that are unset or blank"""
        required = {
            "SUPERSET_BASE_URL": self.SUPERSET_BASE_URL,
            "SUPERSET_USERNAME": self.SUPERSET_USERNAME,
            "SUPERSET_PASSWORD": self.SUPERSET_PASSWORD,
        }
        return [name for name, value in required.items() if not value]

    def superset_credentials(self) -> SupersetCredentials:
        """
        Build the upstream credentials.

        Raises:
            MissingCredentialsError: If any Superset variable is unset
        """
        missing = self.missing_superset_variables()
        if missing:
            raise MissingCredentialsError(missing)

        return SupersetCredentials(
            base_url=self.SUPERSET_BASE_URL.rstrip("/"),
            username=self.SUPERSET_USERNAME,
            password=self.SUPERSET_PASSWORD,
        )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the global settings"""
    return settings
