"""Configuration and wiring.

Config comes from a YAML file (optional) plus an overrides dict, the same
shape a host platform passes when mounting the module:

    root_dir: ~/.amplifier/pkgenv
    default_environment: default
    catalog_url: https://example.org/catalog.json
    catalog_ttl: 30
    installer: git
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .catalog import DEFAULT_TIMEOUT, DEFAULT_TTL, PackageCatalogClient
from .env_filter import EnvVarPolicy
from .installers import GitInstaller, LocalInstaller
from .protocol import CatalogSource, PackageInstaller
from .registry import EnvironmentRegistry
from .session import DEFAULT_ENVIRONMENT, SessionPool
from .sources import DirectoryCatalogSource, HttpCatalogSource
from .storage import EnvironmentStore, validate_environment_name
from .wrappers import LoggingInstaller

DEFAULT_ROOT = "~/.amplifier/pkgenv"
CONFIG_ENV_VAR = "AMPLIFIER_PKGENV_CONFIG"


class PkgEnvConfig(BaseModel):
    """Validated settings for a package environment host."""

    root_dir: Path = Field(default=Path(DEFAULT_ROOT), description="Base storage directory")
    default_environment: str = Field(default=DEFAULT_ENVIRONMENT)
    catalog_url: str | None = Field(default=None, description="HTTP(S) catalog endpoint")
    catalog_dir: Path | None = Field(default=None, description="Local catalog directory")
    catalog_ttl: float = Field(default=DEFAULT_TTL, ge=0)
    catalog_timeout: float | None = Field(default=DEFAULT_TIMEOUT, gt=0)
    allow_stale_catalog: bool = False
    install_timeout: float | None = Field(default=None, gt=0)
    installer: Literal["git", "local"] = "git"
    env_policy: EnvVarPolicy = EnvVarPolicy.CORE_ONLY

    @field_validator("default_environment")
    @classmethod
    def _check_environment_name(cls, value: str) -> str:
        return validate_environment_name(value)

    @model_validator(mode="after")
    def _check_catalog(self) -> PkgEnvConfig:
        if self.catalog_url is None and self.catalog_dir is None:
            raise ValueError("One of 'catalog_url' or 'catalog_dir' is required")
        if self.catalog_url is not None and self.catalog_dir is not None:
            raise ValueError("'catalog_url' and 'catalog_dir' are mutually exclusive")
        return self


def load_config(
    path: str | Path | None = None, overrides: dict[str, Any] | None = None
) -> PkgEnvConfig:
    """Read YAML config (path, else $AMPLIFIER_PKGENV_CONFIG) and apply overrides."""
    data: dict[str, Any] = {}
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if path:
        with open(Path(path).expanduser(), encoding="utf-8") as fh:
            content = yaml.safe_load(fh) or {}
        if not isinstance(content, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        data.update(content)
    if overrides:
        data.update(overrides)
    return PkgEnvConfig.model_validate(data)


def build_catalog(config: PkgEnvConfig) -> PackageCatalogClient:
    source: CatalogSource
    if config.catalog_url is not None:
        source = HttpCatalogSource(config.catalog_url)
    else:
        assert config.catalog_dir is not None
        source = DirectoryCatalogSource(config.catalog_dir)
    return PackageCatalogClient(
        source,
        ttl=config.catalog_ttl,
        timeout=config.catalog_timeout,
        allow_stale=config.allow_stale_catalog,
    )


def build_installer(config: PkgEnvConfig) -> PackageInstaller:
    inner: PackageInstaller
    if config.installer == "local":
        inner = LocalInstaller()
    else:
        inner = GitInstaller(env_policy=config.env_policy)
    return LoggingInstaller(inner=inner)


def build_registry(config: PkgEnvConfig) -> EnvironmentRegistry:
    """Wire store, catalog client and installer into a registry."""
    store = EnvironmentStore(config.root_dir)
    store.purge_leftovers()
    return EnvironmentRegistry(
        store=store,
        catalog=build_catalog(config),
        installer=build_installer(config),
        install_timeout=config.install_timeout,
    )


def build_session_pool(config: PkgEnvConfig) -> SessionPool:
    return SessionPool(
        build_registry(config), default_environment=config.default_environment
    )
