"""API background services."""

from .sweeper import Sweeper

__all__ = ["Sweeper"]
