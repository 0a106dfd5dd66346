# mlmd_viewer/settings.py
"""
Application settings.
"""

import os
from dataclasses import dataclass

# Load .env file
from dotenv import load_dotenv
load_dotenv()


@dataclass
class Settings:
    """Application configuration."""

    # Metadata store
    mlmd_database_url: str = os.getenv(
        "MLMD_DATABASE_URL",
        "sqlite:///./mlmd.sqlite"
    )

    # Graph rendering
    graphviz_dot: str = os.getenv("GRAPHVIZ_DOT", "dot")
    graphviz_format: str = os.getenv("GRAPHVIZ_FORMAT", "png")
    graphviz_timeout_seconds: float = float(os.getenv("GRAPHVIZ_TIMEOUT", "30"))

    # Prefix for node deep links in rendered graphs
    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"

    # API settings
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    allowed_origins: str = os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:8000"
    )


# Global settings instance
settings = Settings()
