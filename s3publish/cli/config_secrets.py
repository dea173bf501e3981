"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

CLI commands for keeping AWS credentials encrypted in the configuration file.

`secrets encrypt` rewrites one value of the YAML file selected by --config
into its ENC[...] form. load_config decrypts it again at publish time with
the master password from S3PUBLISH_MASTER_PASSWORD.
"""

import dataclasses
import os
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml

from s3publish.cli.context import CLIContext, pass_context
from s3publish.config.encryption import (
    MASTER_PASSWORD_ENV,
    ConfigEncryption,
    generate_master_password,
    save_master_password,
)
from s3publish.config.settings import PublishConfig, get_default_config_path
from s3publish.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SECRET_KEY = "aws.secret_access_key"


def _check_key(key: str) -> None:
    """Reject dotted keys that do not name a configuration setting."""
    section, _, name = key.partition(".")
    defaults = PublishConfig()
    if not name or section not in {f.name for f in dataclasses.fields(defaults)}:
        raise click.BadParameter(f"'{key}' is not a configuration setting", param_hint="KEY")
    if name not in {f.name for f in dataclasses.fields(getattr(defaults, section))}:
        raise click.BadParameter(f"'{key}' is not a configuration setting", param_hint="KEY")


def _config_file(ctx: CLIContext) -> Path:
    return Path(ctx.config_path or get_default_config_path()).expanduser()


def _read_raw_config(path: Path) -> Dict[str, Any]:
    """Read the YAML file as written: no ${ENV} expansion, no decryption."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise click.ClickException(f"Failed to parse '{path}': {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise click.ClickException(f"'{path}' must contain a mapping at the top level")
    return data


def _write_raw_config(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))


def _lookup(data: Dict[str, Any], key: str) -> Optional[Any]:
    section, _, name = key.partition(".")
    section_data = data.get(section)
    if not isinstance(section_data, dict):
        return None
    return section_data.get(name)


def _assign(data: Dict[str, Any], key: str, value: str) -> None:
    section, _, name = key.partition(".")
    section_data = data.get(section)
    if section_data is None:
        section_data = data[section] = {}
    elif not isinstance(section_data, dict):
        raise click.ClickException(f"'{section}' section must be a mapping")
    section_data[name] = value


def _encryptor(password: Optional[str], confirm: bool = False) -> ConfigEncryption:
    if not password:
        password = os.environ.get(MASTER_PASSWORD_ENV)
    if not password:
        password = click.prompt(
            "Master password", hide_input=True, confirmation_prompt=confirm
        )
    return ConfigEncryption(master_password=password)


@click.group(name="secrets")
def secrets_group():
    """Encrypt credentials stored in the configuration file."""
    pass


@secrets_group.command(name="encrypt")
@click.argument("key", default=DEFAULT_SECRET_KEY)
@click.option(
    "--value",
    default=None,
    help="Value to store (default: the plaintext value already in the file, else prompted)",
)
@click.option(
    "--password",
    "-p",
    help=f"Master password (default: ${MASTER_PASSWORD_ENV}, else prompted)",
)
@pass_context
def encrypt_setting(ctx: CLIContext, key: str, value: Optional[str], password: Optional[str]):
    """
    Store KEY as an ENC[...] value in the configuration file.

    KEY is a dotted setting name and defaults to aws.secret_access_key.

    Example:
        s3publish secrets encrypt
        s3publish -c vault.yaml secrets encrypt aws.access_key_id
    """
    _check_key(key)
    path = _config_file(ctx)
    data = _read_raw_config(path)

    if value is None:
        current = _lookup(data, key)
        if ConfigEncryption.is_encrypted(current):
            raise click.ClickException(f"{key} is already encrypted in {path}")
        if current in (None, ""):
            value = click.prompt(f"Value for {key}", hide_input=True)
        else:
            value = str(current)

    _assign(data, key, _encryptor(password, confirm=True).encrypt(value))
    _write_raw_config(path, data)

    logger.info("config_value_encrypted", path=str(path), key=key)
    click.echo(f"Encrypted {key} in {path}")
    if not os.environ.get(MASTER_PASSWORD_ENV):
        click.echo(f"Export {MASTER_PASSWORD_ENV} before running 's3publish publish'.")


@secrets_group.command(name="show")
@click.argument("key", default=DEFAULT_SECRET_KEY)
@click.option(
    "--password",
    "-p",
    help=f"Master password (default: ${MASTER_PASSWORD_ENV}, else prompted)",
)
@pass_context
def show_setting(ctx: CLIContext, key: str, password: Optional[str]):
    """
    Print the decrypted value of KEY from the configuration file.

    Example:
        s3publish secrets show aws.secret_access_key
    """
    _check_key(key)
    path = _config_file(ctx)
    current = _lookup(_read_raw_config(path), key)
    if not ConfigEncryption.is_encrypted(current):
        raise click.ClickException(f"{key} is not encrypted in {path}")

    try:
        click.echo(_encryptor(password).decrypt(current))
    except ValueError as e:
        logger.error("config_value_decrypt_failed", path=str(path), key=key)
        raise click.ClickException(str(e)) from e


@secrets_group.command(name="generate-password")
@click.option(
    "--save",
    "-s",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the password to this file (owner-only permissions)",
)
def generate_password(save: Optional[str]):
    """
    Generate a master password for ENC[...] values.

    Example:
        s3publish secrets generate-password --save ~/.s3publish/master_password
    """
    password = generate_master_password()

    if save:
        save_master_password(password, save)
        click.echo(f"Master password saved to {save}")
        click.echo(f"export {MASTER_PASSWORD_ENV}=$(cat {save})")
    else:
        click.echo(f"export {MASTER_PASSWORD_ENV}='{password}'")
