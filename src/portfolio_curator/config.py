"""
Portfolio Curator Configuration
===============================

This module handles configuration loading for the curator service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    CURATOR_SAMPLING_RATE     -> sampling.desired_rate
    CURATOR_TARGET_FRAMES     -> sampling.target_frame_count
    CURATOR_MAX_FRAMES        -> sampling.max_frames
    CURATOR_DEFAULT_SELECTED  -> sampling.default_selected
    CURATOR_STEP_TIMEOUT      -> timing.step_timeout_seconds
    CURATOR_METADATA_TIMEOUT  -> timing.metadata_timeout_seconds
    CURATOR_JPEG_QUALITY      -> encoding.jpeg_quality
    CURATOR_DECODER_BACKEND   -> decoder.backend
    CURATOR_PORT              -> server.port
    CURATOR_LOG_LEVEL         -> logging.level
    PORT                      -> server.port (Cloud Run)

Example:
    from portfolio_curator.config import settings

    print(settings.sampling.target_frame_count)
    print(settings.timing.step_timeout_seconds)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AppConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="portfolio-curator", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class SamplingConfig(BaseModel):
    """Interval planning and frame budget configuration."""

    desired_rate: Optional[float] = Field(
        default=None,
        description="Requested sampling rate in frames per second (None = use target count)",
    )
    target_frame_count: int = Field(
        default=30,
        ge=1,
        description="Frames to aim for when no rate is requested",
    )
    max_frames: int = Field(
        default=600,
        ge=1,
        description="Hard ceiling on frames kept per run",
    )
    max_steps: int = Field(
        default=600,
        ge=1,
        description="Hard ceiling on sampling steps per run",
    )
    min_spacing_seconds: float = Field(
        default=0.1,
        gt=0,
        description="Smallest interval used when falling back to target count",
    )
    lead_in_seconds: float = Field(
        default=0.1,
        ge=0,
        description="Offset of the first sample, capped at duration / 10",
    )
    fallback_duration_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Duration assumed when the source reports none",
    )
    default_selected: bool = Field(
        default=True,
        description="Selection state of newly extracted frames",
    )

    @model_validator(mode="after")
    def _steps_cover_frames(self) -> "SamplingConfig":
        if self.max_steps < self.max_frames:
            raise ValueError("max_steps must be >= max_frames")
        return self


class TimingConfig(BaseModel):
    """Decoder synchronization timeouts and delays."""

    metadata_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Time allowed for the source to report metadata",
    )
    step_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Time allowed per seek before the timestamp is skipped",
    )
    poll_interval_seconds: float = Field(
        default=0.05,
        gt=0,
        description="Backoff between checks for decoded picture data",
    )
    settle_frames: int = Field(
        default=2,
        ge=0,
        description="Paint-cycle yields to wait before reading a picture",
    )
    settle_delay_seconds: float = Field(
        default=1.0 / 60.0,
        ge=0,
        description="Length of one paint-cycle yield",
    )


class EncodingConfig(BaseModel):
    """Still image encoding configuration."""

    jpeg_quality: int = Field(
        default=92,
        ge=1,
        le=100,
        description="JPEG quality for extracted stills",
    )


class ExportConfig(BaseModel):
    """Archive naming configuration."""

    prefix: str = Field(default="portfolio_shot", description="Entry name prefix")
    extension: str = Field(default="jpg", description="Entry file extension")
    min_index_width: int = Field(
        default=2,
        ge=1,
        description="Minimum zero-padded width of entry indices",
    )
    archive_name: str = Field(
        default="portfolio_stills.zip",
        description="Download file name for the archive",
    )


class MockDecoderConfig(BaseModel):
    """Mock decoder backend configuration."""

    duration: float = Field(default=10.0, description="Reported duration in seconds")
    width: int = Field(default=320, ge=1, description="Picture width")
    height: int = Field(default=240, ge=1, description="Picture height")


class DecoderConfig(BaseModel):
    """Decode source backend configuration."""

    backend: str = Field(
        default="opencv",
        description="Decode backend: 'opencv' or 'mock'",
    )
    upload_dir: Optional[str] = Field(
        default=None,
        description="Directory for uploaded videos (None = system temp dir)",
    )
    mock: MockDecoderConfig = Field(default_factory=MockDecoderConfig)


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for Portfolio Curator.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    app: AppConfig = Field(default_factory=AppConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Sampling settings
    if env_rate := os.environ.get("CURATOR_SAMPLING_RATE"):
        config_data.setdefault("sampling", {})["desired_rate"] = float(env_rate)
    if env_target := os.environ.get("CURATOR_TARGET_FRAMES"):
        config_data.setdefault("sampling", {})["target_frame_count"] = int(env_target)
    if env_max := os.environ.get("CURATOR_MAX_FRAMES"):
        sampling = config_data.setdefault("sampling", {})
        sampling["max_frames"] = int(env_max)
        sampling["max_steps"] = max(int(env_max), int(sampling.get("max_steps", 0)))
    if env_selected := os.environ.get("CURATOR_DEFAULT_SELECTED"):
        config_data.setdefault("sampling", {})["default_selected"] = _parse_bool(env_selected)

    # Timing settings
    if env_step := os.environ.get("CURATOR_STEP_TIMEOUT"):
        config_data.setdefault("timing", {})["step_timeout_seconds"] = float(env_step)
    if env_meta := os.environ.get("CURATOR_METADATA_TIMEOUT"):
        config_data.setdefault("timing", {})["metadata_timeout_seconds"] = float(env_meta)

    # Encoding settings
    if env_quality := os.environ.get("CURATOR_JPEG_QUALITY"):
        config_data.setdefault("encoding", {})["jpeg_quality"] = int(env_quality)

    # Decoder settings
    if env_backend := os.environ.get("CURATOR_DECODER_BACKEND"):
        config_data.setdefault("decoder", {})["backend"] = env_backend

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("CURATOR_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("CURATOR_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
