"""Tests for configuration loading and wiring."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from amplifier_pkgenv.config import (
    CONFIG_ENV_VAR,
    PkgEnvConfig,
    build_registry,
    build_session_pool,
    load_config,
)
from amplifier_pkgenv.env_filter import EnvVarPolicy
from amplifier_pkgenv.installers import GitInstaller, LocalInstaller
from amplifier_pkgenv.registry import EnvironmentRegistry
from amplifier_pkgenv.sources import DirectoryCatalogSource, HttpCatalogSource
from amplifier_pkgenv.wrappers import LoggingInstaller


class TestLoadConfig:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "pkgenv.yaml"
        path.write_text(
            "root_dir: /srv/pkgenv\n"
            "catalog_url: https://catalog.example.org/packages.json\n"
            "catalog_ttl: 5\n"
            "env_policy: inherit_none\n"
        )
        config = load_config(path)
        assert str(config.root_dir) == "/srv/pkgenv"
        assert config.catalog_ttl == 5
        assert config.env_policy is EnvVarPolicy.INHERIT_NONE
        assert config.default_environment == "default"
        assert config.installer == "git"

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "pkgenv.yaml"
        path.write_text("catalog_dir: /srv/catalog\ninstaller: git\n")
        config = load_config(path, overrides={"installer": "local"})
        assert config.installer == "local"

    def test_env_var_locates_file(self, tmp_path, monkeypatch):
        path = tmp_path / "pkgenv.yaml"
        path.write_text("catalog_dir: /srv/catalog\ndefault_environment: lab\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().default_environment == "lab"

    def test_catalog_required(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        with pytest.raises(ValidationError, match="catalog_url"):
            load_config(overrides={})

    def test_catalog_sources_exclusive(self):
        with pytest.raises(ValidationError, match="mutually exclusive"):
            PkgEnvConfig(catalog_url="https://x", catalog_dir="/srv/catalog")

    def test_invalid_default_environment(self):
        with pytest.raises(ValidationError):
            PkgEnvConfig(catalog_dir="/srv/catalog", default_environment="bad name")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "pkgenv.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestBuild:
    def test_http_catalog_and_git_installer(self, tmp_path):
        config = PkgEnvConfig(
            root_dir=tmp_path, catalog_url="https://catalog.example.org/p.json"
        )
        registry = build_registry(config)
        assert isinstance(registry, EnvironmentRegistry)
        assert isinstance(registry.catalog.source, HttpCatalogSource)
        assert registry.store.root_dir == tmp_path.resolve()

    def test_directory_catalog_and_local_installer(self, tmp_path):
        config = PkgEnvConfig(
            root_dir=tmp_path, catalog_dir=tmp_path / "catalog", installer="local"
        )
        registry = build_registry(config)
        assert isinstance(registry.catalog.source, DirectoryCatalogSource)
        installer = registry._installer
        assert isinstance(installer, LoggingInstaller)
        assert isinstance(installer.inner, LocalInstaller)

    def test_git_installer_gets_env_policy(self, tmp_path):
        config = PkgEnvConfig(
            root_dir=tmp_path, catalog_dir=tmp_path, env_policy="inherit_none"
        )
        installer = build_registry(config)._installer
        assert isinstance(installer.inner, GitInstaller)
        assert installer.info()["env_policy"] == "inherit_none"

    @pytest.mark.asyncio
    async def test_session_pool_uses_default_environment(self, tmp_path):
        config = PkgEnvConfig(
            root_dir=tmp_path, catalog_dir=tmp_path, default_environment="lab"
        )
        pool = build_session_pool(config)
        session = await pool.get_or_create("conn")
        assert session.current_environment == "lab"
