"""Command-line client for the TrueLayer open-banking data API."""

__version__ = "0.1.0"
