"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Unit tests for configuration loading and validation.
"""

import pytest

from s3publish.config.encryption import ConfigEncryption
from s3publish.config.settings import (
    DEFAULT_REQUEST_TIMEOUT_MS,
    MIN_PART_SIZE_BYTES,
    PublishConfig,
    get_default_config,
    load_config,
    validate_credentials,
)
from s3publish.exceptions import InvalidConfigurationError


class TestDefaults:
    """Tests for default configuration."""

    def test_default_values(self):
        config = get_default_config()

        assert config.aws.region == "us-east-1"
        assert config.transport.request_timeout_ms == DEFAULT_REQUEST_TIMEOUT_MS
        assert config.transport.reverse_proxy_host == ""
        assert config.upload.part_size_bytes == MIN_PART_SIZE_BYTES
        assert config.upload.queue_size == 4
        assert config.upload.acl == "public-read"
        assert config.render.images_dir == "images"

    def test_missing_file_returns_defaults(self, temp_dir):
        config = load_config(str(temp_dir / "absent.yaml"))
        assert config == PublishConfig()

    def test_empty_file_returns_defaults(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("")

        assert load_config(str(path)) == PublishConfig()


class TestLoadConfig:
    """Tests for load_config."""

    def test_full_file(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text(
            "aws:\n"
            "  access_key_id: AKID\n"
            "  secret_access_key: SECRET\n"
            "  bucket_name: notes\n"
            "  region: eu-west-1\n"
            "transport:\n"
            "  request_timeout_ms: 30000\n"
            "  reverse_proxy_host: proxy.internal:8080\n"
            "upload:\n"
            "  queue_size: 8\n"
            "  max_retries: 5\n"
            "  leave_parts_on_error: 'yes'\n"
            "render:\n"
            "  images_dir: attachments\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  format: json\n"
        )

        config = load_config(str(path))

        assert config.aws.bucket_name == "notes"
        assert config.aws.region == "eu-west-1"
        assert config.transport.request_timeout_ms == 30000
        assert config.transport.reverse_proxy_host == "proxy.internal:8080"
        assert config.upload.queue_size == 8
        assert config.upload.max_retries == 5
        assert config.upload.leave_parts_on_error is True
        assert config.render.images_dir == "attachments"
        assert config.logging.format == "json"

    def test_env_var_expansion(self, temp_dir, monkeypatch):
        monkeypatch.setenv("S3P_TEST_KEY", "FROMENV")
        monkeypatch.delenv("S3P_TEST_TIMEOUT", raising=False)
        path = temp_dir / "config.yaml"
        path.write_text(
            "aws:\n"
            "  access_key_id: ${S3P_TEST_KEY}\n"
            "transport:\n"
            "  request_timeout_ms: ${S3P_TEST_TIMEOUT:1500}\n"
        )

        config = load_config(str(path))

        assert config.aws.access_key_id == "FROMENV"
        assert config.transport.request_timeout_ms == 1500

    def test_encrypted_value(self, temp_dir, monkeypatch):
        monkeypatch.setenv("S3PUBLISH_MASTER_PASSWORD", "master")
        encrypted = ConfigEncryption("master").encrypt("top-secret")
        path = temp_dir / "config.yaml"
        path.write_text(f"aws:\n  secret_access_key: \"{encrypted}\"\n")

        config = load_config(str(path))

        assert config.aws.secret_access_key == "top-secret"

    def test_encrypted_value_without_password(self, temp_dir, monkeypatch):
        monkeypatch.delenv("S3PUBLISH_MASTER_PASSWORD", raising=False)
        encrypted = ConfigEncryption("master").encrypt("top-secret")
        path = temp_dir / "config.yaml"
        path.write_text(f"aws:\n  secret_access_key: \"{encrypted}\"\n")

        with pytest.raises(InvalidConfigurationError, match="decrypt"):
            load_config(str(path))

    def test_malformed_yaml(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("aws: [unclosed\n")

        with pytest.raises(InvalidConfigurationError, match="parse"):
            load_config(str(path))

    def test_top_level_must_be_mapping(self, temp_dir):
        path = temp_dir / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(InvalidConfigurationError, match="mapping"):
            load_config(str(path))

    @pytest.mark.parametrize("body, message", [
        ("transport:\n  request_timeout_ms: -1\n", "request_timeout_ms"),
        ("transport:\n  request_timeout_ms: soon\n", "integer"),
        ("transport:\n  reverse_proxy_host: http://proxy/\n", "reverse_proxy_host"),
        ("transport:\n  reverse_proxy_host: 'proxy?x=1'\n", "reverse_proxy_host"),
        ("upload:\n  part_size_bytes: 1024\n", "part_size_bytes"),
        ("upload:\n  queue_size: 0\n", "queue_size"),
        ("upload:\n  max_retries: -2\n", "max_retries"),
        ("logging:\n  level: LOUD\n", "level"),
        ("logging:\n  format: xml\n", "format"),
    ])
    def test_invalid_values(self, temp_dir, body, message):
        path = temp_dir / "config.yaml"
        path.write_text(body)

        with pytest.raises(InvalidConfigurationError, match=message):
            load_config(str(path))


class TestValidateCredentials:
    """Tests for validate_credentials."""

    def test_complete_credentials(self, publish_config):
        assert validate_credentials(publish_config)

    @pytest.mark.parametrize("field", ["access_key_id", "secret_access_key", "bucket_name", "region"])
    def test_any_missing_field_fails(self, publish_config, field):
        setattr(publish_config.aws, field, "")
        assert not validate_credentials(publish_config)
