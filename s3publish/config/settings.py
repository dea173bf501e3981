"""
Configuration management for s3publish.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
Supports encrypted configuration values using ENC[...] syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from s3publish.exceptions import InvalidConfigurationError, TranslationError
from s3publish.logging_config import get_logger
from s3publish.transport.bridge import normalize_proxy_host

logger = get_logger(__name__)

# S3 rejects multipart parts smaller than 5 MiB (except the last one)
MIN_PART_SIZE_BYTES = 5 * 1024 * 1024

DEFAULT_REQUEST_TIMEOUT_MS = 600000


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Examples:
        "${AWS_ACCESS_KEY_ID}" -> value of AWS_ACCESS_KEY_ID env var
        "${AWS_REGION:us-east-1}" -> value of AWS_REGION or "us-east-1" if not set
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


def _has_encrypted_values(value: Any) -> bool:
    """Check if configuration contains any ENC[...] values."""
    if isinstance(value, str):
        return value.startswith("ENC[") and value.endswith("]")
    elif isinstance(value, dict):
        return any(_has_encrypted_values(v) for v in value.values())
    elif isinstance(value, list):
        return any(_has_encrypted_values(item) for item in value)
    else:
        return False


def _decrypt_config_values(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively decrypt encrypted configuration values.

    Requires S3PUBLISH_MASTER_PASSWORD environment variable to be set when
    any ENC[...] value is present.
    """
    if not _has_encrypted_values(config_data):
        return config_data

    # Lazy import: the cryptography stack is only needed for encrypted configs
    from s3publish.config.encryption import MASTER_PASSWORD_ENV, ConfigEncryption

    try:
        encryptor = ConfigEncryption()
        decrypted = encryptor.decrypt_config(config_data)
    except ValueError as e:
        logger.error("config_decryption_failed", error=str(e))
        raise InvalidConfigurationError(
            f"Failed to decrypt configuration: {e}. "
            f"Ensure {MASTER_PASSWORD_ENV} environment variable is set correctly."
        ) from e

    logger.debug("config_values_decrypted")
    return decrypted


@dataclass
class AwsConfig:
    """Credentials and target bucket."""

    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = ""
    region: str = "us-east-1"


@dataclass
class TransportConfig:
    """HTTP bridge configuration."""

    request_timeout_ms: Optional[int] = DEFAULT_REQUEST_TIMEOUT_MS  # None or 0 disables the timeout
    reverse_proxy_host: str = ""


@dataclass
class UploadConfig:
    """Upload orchestration configuration."""

    part_size_bytes: int = MIN_PART_SIZE_BYTES
    queue_size: int = 4  # Concurrent part uploads
    max_retries: int = 3
    retry_base_delay_seconds: float = 0.1
    acl: str = "public-read"
    leave_parts_on_error: bool = False


@dataclass
class RenderConfig:
    """Render pipeline configuration."""

    images_dir: str = "images"
    vault_dir: str = ""


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    format: str = "console"  # "json" or "console"


@dataclass
class PublishConfig:
    """Main s3publish configuration."""

    aws: AwsConfig = field(default_factory=AwsConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.s3publish/config.yaml")


def get_default_config() -> PublishConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        PublishConfig: Default configuration object
    """
    return PublishConfig()


def load_config(config_path: Optional[str] = None) -> PublishConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        PublishConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info("config_not_found", path=config_path)
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug("config_file_read", path=config_path)
    except yaml.YAMLError as e:
        logger.error("config_parse_failed", path=config_path, error=str(e))
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error("config_read_failed", path=config_path, error=str(e))
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info("config_file_empty", path=config_path)
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at the top level"
        )

    config_data = _expand_env_vars(config_data)
    config_data = _decrypt_config_values(config_data)

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except InvalidConfigurationError as e:
        logger.error("config_invalid", path=config_path, error=str(e))
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e

    logger.info("config_loaded", path=config_path)
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config_data.get(name) or {}
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"'{name}' section must be a mapping")
    return section


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_config_from_dict(config_data: Dict[str, Any]) -> PublishConfig:
    """
    Build PublishConfig from dictionary loaded from YAML.

    Merges user configuration with defaults. Values coming from ${ENV}
    expansion arrive as strings, so numeric fields are cast here.
    """
    defaults = get_default_config()

    aws_data = _section(config_data, "aws")
    aws = AwsConfig(
        access_key_id=str(aws_data.get("access_key_id", defaults.aws.access_key_id) or ""),
        secret_access_key=str(aws_data.get("secret_access_key", defaults.aws.secret_access_key) or ""),
        bucket_name=str(aws_data.get("bucket_name", defaults.aws.bucket_name) or ""),
        region=str(aws_data.get("region", defaults.aws.region) or defaults.aws.region),
    )

    transport_data = _section(config_data, "transport")
    timeout = transport_data.get("request_timeout_ms", defaults.transport.request_timeout_ms)
    transport = TransportConfig(
        request_timeout_ms=None if timeout in (None, "") else _as_int(timeout, "transport request_timeout_ms"),
        reverse_proxy_host=str(transport_data.get("reverse_proxy_host", "") or ""),
    )

    upload_data = _section(config_data, "upload")
    try:
        retry_delay = float(upload_data.get(
            "retry_base_delay_seconds", defaults.upload.retry_base_delay_seconds
        ))
    except (TypeError, ValueError):
        raise InvalidConfigurationError("upload retry_base_delay_seconds must be a number") from None
    upload = UploadConfig(
        part_size_bytes=_as_int(
            upload_data.get("part_size_bytes", defaults.upload.part_size_bytes), "upload part_size_bytes"
        ),
        queue_size=_as_int(upload_data.get("queue_size", defaults.upload.queue_size), "upload queue_size"),
        max_retries=_as_int(upload_data.get("max_retries", defaults.upload.max_retries), "upload max_retries"),
        retry_base_delay_seconds=retry_delay,
        acl=str(upload_data.get("acl", defaults.upload.acl) or ""),
        leave_parts_on_error=_as_bool(upload_data.get("leave_parts_on_error", defaults.upload.leave_parts_on_error)),
    )

    render_data = _section(config_data, "render")
    render = RenderConfig(
        images_dir=str(render_data.get("images_dir", defaults.render.images_dir) or defaults.render.images_dir),
        vault_dir=os.path.expanduser(str(render_data.get("vault_dir", defaults.render.vault_dir) or "")),
    )

    logging_data = _section(config_data, "logging")
    logging = LoggingConfig(
        level=str(logging_data.get("level", defaults.logging.level)),
        file=os.path.expanduser(str(logging_data.get("file", defaults.logging.file) or "")),
        format=str(logging_data.get("format", defaults.logging.format)),
    )

    return PublishConfig(
        aws=aws,
        transport=transport,
        upload=upload,
        render=render,
        logging=logging,
    )


def _validate_config(config: PublishConfig) -> None:
    """
    Validate configuration values.

    Credentials are not required here; see validate_credentials.

    Raises:
        InvalidConfigurationError: If a value is out of range
    """
    timeout = config.transport.request_timeout_ms
    if timeout is not None and timeout < 0:
        raise InvalidConfigurationError(
            f"transport request_timeout_ms must be non-negative, got {timeout}"
        )

    try:
        normalize_proxy_host(config.transport.reverse_proxy_host)
    except TranslationError as e:
        raise InvalidConfigurationError(f"transport reverse_proxy_host: {e}") from None

    if config.upload.part_size_bytes < MIN_PART_SIZE_BYTES:
        raise InvalidConfigurationError(
            f"upload part_size_bytes must be at least {MIN_PART_SIZE_BYTES}, "
            f"got {config.upload.part_size_bytes}"
        )

    if config.upload.queue_size < 1:
        raise InvalidConfigurationError(
            f"upload queue_size must be at least 1, got {config.upload.queue_size}"
        )

    if config.upload.max_retries < 0:
        raise InvalidConfigurationError(
            f"upload max_retries must be non-negative, got {config.upload.max_retries}"
        )

    if config.upload.retry_base_delay_seconds < 0:
        raise InvalidConfigurationError(
            f"upload retry_base_delay_seconds must be non-negative, "
            f"got {config.upload.retry_base_delay_seconds}"
        )

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_levels}, got '{config.logging.level}'"
        )

    valid_formats = ["json", "console"]
    if config.logging.format not in valid_formats:
        raise InvalidConfigurationError(
            f"logging format must be one of {valid_formats}, got '{config.logging.format}'"
        )


def validate_credentials(config: PublishConfig) -> bool:
    """
    Check that everything needed to upload is configured.

    Returns:
        True when access key, secret key, region and bucket are all non-empty
    """
    return all([
        config.aws.access_key_id,
        config.aws.secret_access_key,
        config.aws.region,
        config.aws.bucket_name,
    ])
