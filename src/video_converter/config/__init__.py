"""Configuration module for video-converter."""

from .settings import (
    ensure_dirs,
    get_cleanup_config,
    get_config_dir,
    get_config_file,
    get_service_config,
    get_tool_config,
    get_work_dir,
    load_config,
)
from .sources import SourcePolicy, check_format_selector, check_url, match_source

__all__ = [
    "ensure_dirs",
    "get_cleanup_config",
    "get_config_dir",
    "get_config_file",
    "get_service_config",
    "get_tool_config",
    "get_work_dir",
    "load_config",
    "SourcePolicy",
    "check_format_selector",
    "check_url",
    "match_source",
]
