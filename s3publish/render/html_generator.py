"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
S3 Publish, a product of Garudex Labs

Renders a markdown note into a self-contained HTML page.

Images referenced with wiki tags (``![[name.png]]``) are inlined as base64
data URIs so the published page has no external dependencies.
"""

import base64
import html
import os
import re
from pathlib import Path
from string import Template
from typing import Optional

import markdown
from pygments.formatters import HtmlFormatter

from s3publish.exceptions import RenderError
from s3publish.logging_config import get_logger

logger = get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

WIKI_IMAGE_PATTERN = re.compile(r"!+\[\[(.+?)\]\]")

MARKDOWN_EXTENSIONS = [
    "markdown.extensions.fenced_code",
    "markdown.extensions.tables",
    "markdown.extensions.codehilite",
    "markdown.extensions.sane_lists",
]

HIGHLIGHT_CSS_CLASS = "highlight"

PAGE_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>$title</title>
<style>
body { max-width: 48rem; margin: 2rem auto; padding: 0 1rem; font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; line-height: 1.6; color: #24292f; }
header .date { color: #57606a; font-size: 0.9rem; }
img { max-width: 100%; }
table { border-collapse: collapse; }
th, td { border: 1px solid #d0d7de; padding: 0.3rem 0.8rem; }
pre { padding: 1rem; overflow: auto; border-radius: 6px; }
$highlight_styles
</style>
</head>
<body>
<header>
<h1>$title</h1>
<div class="date">$date</div>
</header>
<article>
$content
</article>
</body>
</html>
""")


def split_file_name(file_name: str):
    """
    Derive (date, title) from a note file name.

    The first two space-separated tokens form the date (any directory prefix
    is dropped); the remaining tokens form the title, without ``.md``.

    Example:
        >>> split_file_name("notes/2024-01-02 10:30 Hello world.md")
        ('2024-01-02 10:30', 'Hello world')
    """
    tokens = file_name.split(" ")
    date = " ".join(tokens[:2]).split("/")[-1]
    title = " ".join(tokens[2:]).replace(".md", "", 1)
    return date, title


def is_image_name(name: str) -> bool:
    return name.lower().endswith(IMAGE_EXTENSIONS)


def image_to_data_uri_tag(path: Path) -> str:
    """Read an image file and return an <img> tag embedding it."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise RenderError(f"Cannot read image {path}: {e}") from e

    image_format = path.suffix.lstrip(".")
    encoded = base64.b64encode(data).decode("ascii")
    return f'<img src="data:image/{image_format};base64,{encoded}" alt=""/>'


def replace_wiki_images(content: str, vault_dir: Path, images_dir: str = "images") -> str:
    """
    Replace ``![[...]]`` tags with inlined images.

    Names starting with ``images`` are resolved against the vault directory;
    other names with an image extension are resolved under ``images_dir``.
    Any other embed is reduced to its bare name.
    """
    def substitute(match):
        name = match.group(1)
        if name.startswith("images"):
            return image_to_data_uri_tag(vault_dir / name)
        if is_image_name(name):
            return image_to_data_uri_tag(vault_dir / images_dir / name)
        return name

    return WIKI_IMAGE_PATTERN.sub(substitute, content)


def highlight_styles() -> str:
    """Pygments CSS for code blocks rendered by codehilite."""
    return HtmlFormatter().get_style_defs(f".{HIGHLIGHT_CSS_CLASS}")


def render_markdown(content: str) -> str:
    md = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs={
            "markdown.extensions.codehilite": {"css_class": HIGHLIGHT_CSS_CLASS},
        },
    )
    return md.convert(content)


def generate_html(
    content: str,
    file_name: str,
    vault_dir: Optional[str] = None,
    images_dir: str = "images",
) -> str:
    """
    Render a note into a complete HTML page.

    Args:
        content: Markdown source of the note
        file_name: Note file name (or vault-relative path) used for title and date
        vault_dir: Directory image paths are resolved against (default: cwd)
        images_dir: Attachment folder inside the vault for bare image names

    Returns:
        HTML document as a string

    Raises:
        RenderError: If a referenced image cannot be read
    """
    date, title = split_file_name(file_name)
    root = Path(vault_dir) if vault_dir else Path(os.getcwd())

    body = replace_wiki_images(render_markdown(content), root, images_dir)

    logger.debug("note_rendered", title=title, date=date, html_bytes=len(body))

    return PAGE_TEMPLATE.substitute(
        title=html.escape(title),
        date=html.escape(date),
        highlight_styles=highlight_styles(),
        content=body,
    )
