"""
Setup script for s3publish.

Publishes markdown notes as public HTML pages on S3 through a single-shot
HTTP bridge.
"""

from pathlib import Path
from setuptools import find_packages, setup

# Read version from VERSION file
version_file = Path(__file__).parent / "VERSION"
version = version_file.read_text().strip()

setup(
    name="s3publish",
    version=version,
    description="Publish markdown notes as public HTML pages on Amazon S3",
    author="Garudex Labs",
    python_requires=">=3.9",
    packages=find_packages(include=["s3publish", "s3publish.*"]),
    install_requires=[
        "httpx>=0.25",
        "structlog>=23.1",
        "click>=8.1",
        "PyYAML>=6.0",
        "cryptography>=41.0",
        "botocore>=1.31",
        "Markdown>=3.4",
        "Pygments>=2.15",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
        "dev": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "s3publish=s3publish.cli.main:cli",
        ],
    },
)
