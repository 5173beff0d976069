# leanpub_scout/__init__.py
"""
LeanpubScout package initializer.
Defines package version and exposes the CLI.
"""
__version__ = "0.1.0"

# Expose CLI entry point
from leanpub_scout.cli import cli as main_cli  # noqa: E402

__all__ = ["__version__", "main_cli"]
