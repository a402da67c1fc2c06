"""
Configuration management using Pydantic Settings
"""
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/app/core/config.py
# Project root is: backend/app/core/../../../
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
PROJECT_ROOT = _backend_dir.parent
ENV_FILE = PROJECT_ROOT / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "jqlite-bridge"
    app_env: str = Field(default="development", description="Application environment")
    log_level: str = Field(default="INFO", description="Logging level")
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3000, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)"
    )
    static_dir: str = Field(
        default="public",
        description="Directory with the web front-end (relative to project root)"
    )

    # Logging
    log_uvicorn_access: bool = Field(default=False, description="Enable Uvicorn access logging")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"app.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=True, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/jqlite_bridge.log",
        description="Path to log file (relative to project root)"
    )
    log_file_rotation: str = Field(
        default="midnight",
        description="Log file rotation: 'midnight' or 'W0'..'W6' (weekly)"
    )
    log_file_retention: int = Field(
        default=30,
        ge=1,
        description="Number of rotated log files to keep"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (passwords, tokens) - NOT RECOMMENDED"
    )

    # Engines
    jqlite_path: str = Field(
        default=str(PROJECT_ROOT / "jqlite.exe"),
        description="Path to the query engine executable"
    )
    jqlite_viz_path: str = Field(
        default=str(PROJECT_ROOT / "jqlite_viz.exe"),
        description="Path to the visualization engine executable"
    )

    # Execution bounds
    query_timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=120000,
        description="Wall-clock limit for one engine invocation (milliseconds)"
    )
    max_output_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum combined size of captured stdout and stderr (bytes)"
    )
    output_limit_policy: Literal["error", "truncate"] = Field(
        default="error",
        description="What to do when output exceeds the ceiling: kill with an error, or truncate"
    )
    max_request_body_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum accepted request body size (bytes)"
    )
    temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for transient engine input files (system temp dir if unset)"
    )

    # Tracing
    enable_tracing: bool = Field(default=False, description="Enable OpenTelemetry tracing")
    tracing_service_name: str = Field(default="jqlite-bridge", description="Service name for tracing")
    tracing_exporter: str = Field(
        default="console",
        description="Tracing exporter: 'console' or 'otlp'"
    )
    tracing_otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP endpoint URL (e.g., http://localhost:4318/v1/traces)"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lower-case level names from the environment"""
        return v.upper()

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def resolved_temp_dir(self) -> Path:
        """Directory where transient input files are written"""
        if self.temp_dir:
            return Path(self.temp_dir)
        return Path(tempfile.gettempdir())

    @property
    def resolved_static_dir(self) -> Path:
        path = Path(self.static_dir)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
