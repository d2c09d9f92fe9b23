"""Logging and display utilities."""

from .display import display_estimate, display_simulation
from .logging import setup_logging

__all__ = ["display_estimate", "display_simulation", "setup_logging"]
