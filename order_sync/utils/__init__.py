"""
Configuration and environment helpers.
"""
from .config import SyncConfig, load_config  # noqa: F401

__all__ = ["SyncConfig", "load_config"]
