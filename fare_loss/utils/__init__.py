"""Configuration, logging and error handling utilities."""

from fare_loss.utils.config_manager import ConfigManager, PipelineConfig
from fare_loss.utils.error_handling import RecoveryContext

__all__ = ["ConfigManager", "PipelineConfig", "RecoveryContext"]
