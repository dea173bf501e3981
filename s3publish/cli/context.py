"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

CLI context for s3publish.

Provides shared context object and decorators for CLI commands.
"""

from typing import Optional

import click

from s3publish.config.settings import PublishConfig


# Global context object to share configuration across commands
class CLIContext:
    """Context object for CLI commands."""

    def __init__(self):
        self.config: Optional[PublishConfig] = None
        self.config_path: Optional[str] = None
        self.verbose = False


pass_context = click.make_pass_decorator(CLIContext, ensure=True)
