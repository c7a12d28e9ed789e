"""Command-line interface (`near-client`)."""

from .main import app, main, run

__all__ = ["app", "main", "run"]
