"""Data models for package environments.

These models define the shared types used across the package:
- Environment: an isolated storage namespace
- Package: an installed unit inside one environment
- CatalogEntry: an installable unit advertised by the catalog
- ErrorInfo: consistent error payload (transport vs operation)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class PackageKind(str, Enum):
    """Presentation tag for a package. Core behaviour never branches on it."""

    ABILITY = "ability"
    APP = "app"
    LIBRARY = "library"
    DRIVER = "driver"


class Environment(BaseModel):
    """A named, isolated namespace with its own storage root."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique environment name")
    storage_root: Path = Field(..., description="Directory owned by this environment")
    created_at: datetime = Field(..., description="Creation time (UTC)")


class CatalogEntry(BaseModel):
    """A single installable unit as listed by the remote catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    kind: PackageKind
    source_ref: str = Field(
        ..., alias="sourceRef", description="Opaque locator handed to the installer"
    )


class Package(BaseModel):
    """An installed package record. Exists only after a committed install."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    kind: PackageKind
    environment: str
    source_ref: str
    installed_at: datetime

    @classmethod
    def from_entry(
        cls, entry: CatalogEntry, environment: str, installed_at: datetime
    ) -> Package:
        return cls(
            name=entry.name,
            version=entry.version,
            kind=entry.kind,
            environment=environment,
            source_ref=entry.source_ref,
            installed_at=installed_at,
        )

    def to_record(self) -> dict[str, Any]:
        """Index record for this package (keyed by name in the index)."""
        return {
            "version": self.version,
            "kind": self.kind.value,
            "source_ref": self.source_ref,
            "installed_at": self.installed_at.isoformat(),
        }


class ErrorInfo(BaseModel):
    """Consistent error structure surfaced to sessions and UI layers.

    Two categories:
    - transport: the catalog or network is broken
    - operation: the request failed within a working system
    """

    error_type: Literal["transport", "operation"] = Field(
        ..., description="Error category: 'transport' or 'operation'"
    )
    error_code: str = Field(
        ..., description="Machine-readable error code (e.g., 'package_not_found')"
    )
    message: str = Field(..., description="Human-readable error description")
    retriable: bool = Field(
        default=False, description="Whether the operation can be retried"
    )
    environment: str | None = Field(
        default=None, description="Environment the error relates to, if any"
    )

    def to_dict(self) -> dict:
        return {
            "error_type": self.error_type,
            "error_code": self.error_code,
            "message": self.message,
            "retriable": self.retriable,
            "environment": self.environment,
        }
