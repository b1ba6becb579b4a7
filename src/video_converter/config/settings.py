"""Basic settings and directory management."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from platformdirs import user_cache_dir, user_config_dir

APP_NAME = "video-converter"


def get_config_dir() -> Path:
    """Get the configuration directory."""
    return Path(os.environ.get("VIDEO_CONVERTER_CONFIG_DIR", user_config_dir(APP_NAME)))


def get_work_dir() -> Path:
    """Get the directory where conversion artifacts are written."""
    default = Path(user_cache_dir(APP_NAME)) / "artifacts"
    return Path(os.environ.get("VIDEO_CONVERTER_WORK_DIR", str(default)))


def get_config_file() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from file."""
    config: dict[str, Any] = {}
    config_file = get_config_file()
    if config_file.exists():
        with open(config_file) as f:
            config = json.load(f)
    return config


def ensure_dirs() -> None:
    """Ensure all required directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_work_dir().mkdir(parents=True, exist_ok=True)


DEFAULT_TOOL_CONFIG = {
    "extractor_path": None,
    "encoder_path": None,
    "max_output_bytes": 50 * 1024 * 1024,
    "info_max_output_bytes": 10 * 1024 * 1024,
    "candidate_timeout": 60,
    "info_timeout": 120,
    "download_timeout": None,
}

DEFAULT_SERVICE_CONFIG = {
    "host": "0.0.0.0",
    "port": 8080,
    "max_batch": 10,
    "serve_cleanup_delay": 2.0,
    "extra_hosts": [],
    "allow_all_hosts": False,
}

# Cleanup configuration
DEFAULT_CLEANUP_CONFIG = {
    "enabled": True,
    "retention_days": 1,
    "schedule": "0 */6 * * *",  # Every 6 hours
}


def get_tool_config() -> dict[str, Any]:
    """Get external tool configuration; environment variables win over the file."""
    config = load_config()
    tools = {**DEFAULT_TOOL_CONFIG, **config.get("tools", {})}
    if os.environ.get("VIDEO_CONVERTER_EXTRACTOR"):
        tools["extractor_path"] = os.environ["VIDEO_CONVERTER_EXTRACTOR"]
    if os.environ.get("VIDEO_CONVERTER_ENCODER"):
        tools["encoder_path"] = os.environ["VIDEO_CONVERTER_ENCODER"]
    return tools


def get_service_config() -> dict[str, Any]:
    """Get HTTP service configuration with defaults."""
    config = load_config()
    service = config.get("service", {})
    return {**DEFAULT_SERVICE_CONFIG, **service}


def get_cleanup_config() -> dict[str, Any]:
    """Get cleanup configuration with defaults."""
    config = load_config()
    cleanup = config.get("cleanup", {})
    return {**DEFAULT_CLEANUP_CONFIG, **cleanup}
