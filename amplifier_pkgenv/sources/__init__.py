"""Catalog sources: where the raw package listing comes from."""

from .directory import DirectoryCatalogSource
from .http import HttpCatalogSource

__all__ = ["DirectoryCatalogSource", "HttpCatalogSource"]
