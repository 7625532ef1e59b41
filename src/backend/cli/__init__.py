"""Cli."""

from .server import backend_group

__all__ = ("backend_group",)
