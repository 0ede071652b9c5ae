"""
Configuration for the EcoTrack API.

Values are read from environment variables when this module is imported,
so the environment must be prepared before the first import.  Tests and
embedding code can build their own ``Settings`` instance instead.
"""

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote_plus


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "EcoTrack API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: Optional[str] = os.getenv("LOG_FILE") or None

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "5000"))

    # Atlas credentials.  ``DATABASE_URL`` wins when it is set, which is
    # how local and test deployments point at a plain mongodb:// server.
    db_username: str = os.getenv("DB_USERNAME", "")
    db_password: str = os.getenv("DB_PASSWORD", "")
    db_host: str = os.getenv("DB_HOST", "cluster0.oeyfvq1.mongodb.net")
    db_name: str = os.getenv("DB_NAME", "ecotrack")
    database_url: Optional[str] = os.getenv("DATABASE_URL") or None
    db_timeout_ms: int = int(os.getenv("DB_TIMEOUT_MS", "5000"))

    @property
    def mongodb_uri(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mongodb+srv://{quote_plus(self.db_username)}:{quote_plus(self.db_password)}"
            f"@{self.db_host}/{self.db_name}?retryWrites=true&w=majority&appName=Cluster0"
        )


settings = Settings()
