"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Markdown note rendering.
"""

from s3publish.render.html_generator import generate_html, replace_wiki_images, split_file_name

__all__ = [
    "generate_html",
    "replace_wiki_images",
    "split_file_name",
]
