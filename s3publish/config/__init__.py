"""
Configuration management for s3publish.

Handles loading and validation of configuration files.
"""

from s3publish.config.settings import (
    AwsConfig,
    LoggingConfig,
    PublishConfig,
    RenderConfig,
    TransportConfig,
    UploadConfig,
    get_default_config,
    get_default_config_path,
    load_config,
    validate_credentials,
)

__all__ = [
    "AwsConfig",
    "LoggingConfig",
    "PublishConfig",
    "RenderConfig",
    "TransportConfig",
    "UploadConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
    "validate_credentials",
]
