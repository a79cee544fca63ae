"""
Configuration module for the offset player.

This module provides Pydantic-based configuration models
loaded from environment variables.

Exports:
    SyncConfig: Live sync loop parameters (SYNC_ prefix)
    ExportConfig: Export/encoder parameters (EXPORT_ prefix)
"""

from offset_player.config.export_config import ExportConfig
from offset_player.config.sync_config import SyncConfig

__all__ = [
    "ExportConfig",
    "SyncConfig",
]
