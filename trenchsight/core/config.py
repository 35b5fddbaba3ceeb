"""Configuration Management System

Centralized configuration for the TrenchSight capture service.
Handles configuration for all service components including:

Core Components:
- Operator API settings
- Backend endpoint and network behaviour
- Capture quality gates (battery, storage, tilt)
- Camera device and encoding
- Logging paths

Features:
- Environment-based configuration with override support
- Type validation and enforcement
- Dynamic path resolution

Example:
    from trenchsight.core.config import settings

    backend = settings.BACKEND_URL
    tolerance = settings.ANGLE_TOLERANCE_DEG
"""

import platform
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration management service."""

    # API settings
    API_PREFIX: str = "/api/v1"
    VERSION: str = "0.1.0"
    CORS_ORIGINS: str = "*"

    # Base directory for resolving relative paths
    BASE_DIR: Path = Path(__file__).parent.parent.parent

    # Logging settings
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    # Backend (session/photo storage service)
    BACKEND_URL: str = "http://localhost:8000"
    BACKEND_TIMEOUT_S: float | None = None

    # Quality gates
    LOW_BATTERY_THRESHOLD: float = 0.15
    MIN_FREE_STORAGE_BYTES: int = 100 * 1024 * 1024
    ANGLE_TOLERANCE_DEG: float = 5.0

    # Position stream
    GEO_HIGH_ACCURACY: bool = True
    GEO_MAX_SAMPLE_AGE_MS: int = 1000

    # Readiness probes
    STORAGE_PATH: str = "."
    BATTERY_POLL_INTERVAL_S: float = 30.0

    # Camera
    CAMERA_SOURCE: str = "0"
    CAMERA_WARMUP_FRAMES: int = 5
    JPEG_QUALITY: int = 90
    DEVICE_DESCRIPTOR: str | None = None

    # Session-scoped fields (anchor, sequence) reset on every start
    RESET_ON_RESTART: bool = True

    def __init__(self, **kwargs):
        """Initialize settings and create required directories."""
        super().__init__(**kwargs)

        self.log_dir_path.mkdir(parents=True, exist_ok=True)

    @property
    def log_dir_path(self) -> Path:
        """Resolve log directory path.

        If LOG_DIR is absolute, uses it directly.
        If relative, resolves from BASE_DIR.
        """
        path = Path(self.LOG_DIR)
        return path if path.is_absolute() else self.BASE_DIR / path

    @property
    def cors_origins_list(self) -> List[str]:
        origins = [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return origins or ["*"]

    @property
    def camera_source(self) -> int | str:
        """OpenCV wants an int for local devices and a string for stream URLs."""
        source = self.CAMERA_SOURCE.strip()
        return int(source) if source.isdigit() else source

    @property
    def device_descriptor(self) -> str:
        """Describe the capturing device, analogous to a browser user agent."""
        if self.DEVICE_DESCRIPTOR:
            return self.DEVICE_DESCRIPTOR
        return (
            f"TrenchSight/{self.VERSION} ({platform.system()} {platform.release()}; "
            f"{platform.machine()}) Python/{platform.python_version()}"
        )


# Initialize global settings
settings = Settings()
