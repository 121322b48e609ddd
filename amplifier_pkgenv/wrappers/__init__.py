"""Composable wrappers around installer collaborators."""

from .logging_wrapper import LoggingInstaller

__all__ = ["LoggingInstaller"]
