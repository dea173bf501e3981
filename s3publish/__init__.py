"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

s3publish - Publish markdown notes as HTML pages to an S3 bucket.

The transport core bridges a generic request/response HTTP handler onto a
single-shot, fully buffered HTTP primitive with timeout and cancellation
support. Rendering, signed upload orchestration and the CLI sit on top.
"""

from s3publish._version import __version__

__all__ = ["__version__"]
