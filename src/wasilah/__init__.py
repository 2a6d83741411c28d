"""Wasilah exports: report generation engine for the Wasilah CSR platform."""

__version__ = "0.1.0"
