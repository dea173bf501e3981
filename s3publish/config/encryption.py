"""
Configuration encryption utilities for s3publish.

Lets the AWS secret access key (or any other value) live in the YAML
configuration as ENC[...] instead of plaintext.

All encryption uses AES-256-GCM for authenticated encryption.
"""

import base64
import os
from pathlib import Path
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from s3publish.logging_config import get_logger

logger = get_logger(__name__)

MASTER_PASSWORD_ENV = "S3PUBLISH_MASTER_PASSWORD"


class ConfigEncryption:
    """
    Handles encryption and decryption of configuration values.

    Uses AES-256-GCM with a key derived from a master password using PBKDF2.

    Example:
        >>> encryptor = ConfigEncryption("master_password")
        >>> encrypted = encryptor.encrypt("aws-secret")
        >>> encryptor.decrypt(encrypted)
        'aws-secret'
    """

    ENCRYPTED_PREFIX = "ENC["
    ENCRYPTED_SUFFIX = "]"

    DEFAULT_SALT = b"s3publish_config_encryption_salt_v1"

    NONCE_SIZE = 12

    def __init__(
        self,
        master_password: Optional[str] = None,
        salt: Optional[bytes] = None,
    ):
        """
        Initialize configuration encryption.

        Args:
            master_password: Master password (read from S3PUBLISH_MASTER_PASSWORD if not provided)
            salt: Salt for key derivation (uses default if not provided)

        Raises:
            ValueError: If no master password is available
        """
        if master_password is None:
            master_password = os.environ.get(MASTER_PASSWORD_ENV)
            if not master_password:
                raise ValueError(
                    f"Master password not provided. Set {MASTER_PASSWORD_ENV} "
                    "environment variable or pass master_password parameter."
                )

        self.salt = salt or self.DEFAULT_SALT
        self.cipher = AESGCM(self._derive_key(master_password, self.salt))

    @staticmethod
    def _derive_key(password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100000,
        )
        return kdf.derive(password.encode())

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a plaintext value.

        Returns:
            Encrypted value in format: ENC[base64(nonce + ciphertext)]
        """
        nonce = os.urandom(self.NONCE_SIZE)
        ciphertext = self.cipher.encrypt(nonce, plaintext.encode(), None)
        encoded = base64.b64encode(nonce + ciphertext).decode("ascii")
        return f"{self.ENCRYPTED_PREFIX}{encoded}{self.ENCRYPTED_SUFFIX}"

    def decrypt(self, encrypted: str) -> str:
        """
        Decrypt an ENC[...] value.

        Raises:
            ValueError: If the value is not encrypted or decryption fails
        """
        if not self.is_encrypted(encrypted):
            raise ValueError(
                f"Value is not encrypted (must start with {self.ENCRYPTED_PREFIX} "
                f"and end with {self.ENCRYPTED_SUFFIX})"
            )

        encoded = encrypted[len(self.ENCRYPTED_PREFIX):-len(self.ENCRYPTED_SUFFIX)]

        try:
            data = base64.b64decode(encoded, validate=True)
            plaintext = self.cipher.decrypt(data[:self.NONCE_SIZE], data[self.NONCE_SIZE:], None)
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError) as e:
            logger.error("config_decryption_failed", error=type(e).__name__)
            raise ValueError(f"Failed to decrypt value: {type(e).__name__}") from e

    @classmethod
    def is_encrypted(cls, value: object) -> bool:
        """Check whether a value uses the ENC[...] format."""
        return (
            isinstance(value, str) and
            value.startswith(cls.ENCRYPTED_PREFIX) and
            value.endswith(cls.ENCRYPTED_SUFFIX)
        )

    def decrypt_config(self, config_dict: dict) -> dict:
        """
        Recursively decrypt all encrypted values in a configuration dictionary.
        """
        result = {}

        for key, value in config_dict.items():
            if self.is_encrypted(value):
                result[key] = self.decrypt(value)
                logger.debug("config_value_decrypted", key=key)
            elif isinstance(value, dict):
                result[key] = self.decrypt_config(value)
            elif isinstance(value, list):
                result[key] = [
                    self.decrypt(item) if self.is_encrypted(item) else item
                    for item in value
                ]
            else:
                result[key] = value

        return result


def encrypt_value(value: str, master_password: Optional[str] = None) -> str:
    """Encrypt a single value; see ConfigEncryption.encrypt."""
    return ConfigEncryption(master_password=master_password).encrypt(value)


def decrypt_value(encrypted: str, master_password: Optional[str] = None) -> str:
    """Decrypt a single value; see ConfigEncryption.decrypt."""
    return ConfigEncryption(master_password=master_password).decrypt(encrypted)


def generate_master_password() -> str:
    """
    Generate a secure random master password.

    Returns:
        Base64-encoded random password (32 bytes)
    """
    return base64.b64encode(os.urandom(32)).decode("ascii")


def save_master_password(password: str, path: str) -> None:
    """
    Save master password to a file readable by the owner only.
    """
    password_path = Path(path).expanduser()
    password_path.parent.mkdir(parents=True, exist_ok=True)
    password_path.write_text(password)
    os.chmod(password_path, 0o600)

    logger.info("master_password_saved", path=str(password_path))
