"""Configuration management for MCP Desktop."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from mcp_desktop.exceptions import ConfigError


class AppConfig(BaseModel):
    name: str = "MCP Desktop"
    log_level: str = "INFO"
    log_dir: str = str(Path.home() / "MCPDesktop")

    def log_path(self) -> Path:
        return Path(self.log_dir) / "launcher.log"


class BackendConfig(BaseModel):
    executable_names: list[str] = Field(
        default_factory=lambda: ["xiaohongshu-mcp-desktop", "xiaohongshu-mcp"]
    )
    backend_dir: str = "backend"
    search_dirs: list[str] = Field(default_factory=list)
    headless_flag: str = "-no-browser"
    port_flag: str = "-port"
    extra_conflict_phrases: list[str] = Field(default_factory=list)
    stop_wait_seconds: float = Field(default=5.0, gt=0)
    output_history: int = Field(default=200, ge=0)

    def file_names(self) -> list[str]:
        """Executable names with the platform suffix applied."""
        if sys.platform == "win32":
            return [n if n.lower().endswith(".exe") else f"{n}.exe" for n in self.executable_names]
        return list(self.executable_names)


class PortConfig(BaseModel):
    preferred_start: int = Field(default=18060, ge=1, le=65535)
    range_size: int = Field(default=100, ge=1)
    fallback_start: int = Field(default=8080, ge=1, le=65535)


class HealthConfig(BaseModel):
    host: str = "localhost"
    path: str = "/health"
    timeout_seconds: float = Field(default=5.0, gt=0)
    grace_period_seconds: float = Field(default=3.0, ge=0)
    retry_delay_seconds: float = Field(default=2.0, ge=0)
    max_attempts: int = Field(default=5, ge=1)


class WindowConfig(BaseModel):
    title: str = "MCP Desktop"
    width: int = 1200
    height: int = 800
    min_width: int = 800
    min_height: int = 600
    debug: bool = False


class Config(BaseSettings):
    """Application configuration loaded from env vars and config file."""

    app: AppConfig = Field(default_factory=AppConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    ports: PortConfig = Field(default_factory=PortConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    window: WindowConfig = Field(default_factory=WindowConfig)

    model_config = {
        "env_prefix": "MCP_DESKTOP_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> Config:
        """Load configuration from YAML file and environment variables."""
        config_path = config_path or os.getenv("MCP_DESKTOP_CONFIG", "./config.yaml")

        file_config = {}
        config_file = Path(config_path)
        if config_file.exists():
            try:
                with open(config_file, encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid config file {config_file}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigError(f"Config file {config_file} must contain a mapping")

        return cls(**file_config)
