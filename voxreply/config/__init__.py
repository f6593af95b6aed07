"""Configuration module for voxreply."""

from voxreply.config.loader import get_config_path, load_config
from voxreply.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
