"""Command-line interface for Wasilah exports."""

from wasilah.cli.main import app

__all__ = ["app"]
