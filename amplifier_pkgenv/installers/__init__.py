"""Installer collaborators: turn a CatalogEntry into artifacts on disk."""

from .git import GitInstaller
from .local import LocalInstaller

__all__ = ["GitInstaller", "LocalInstaller"]
