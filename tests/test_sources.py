"""Tests for catalog sources — HTTP endpoint and local directory."""

from __future__ import annotations

import threading

import httpx
import pytest
import yaml

from amplifier_pkgenv.errors import CatalogUnavailableError
from amplifier_pkgenv.protocol import CatalogSource
from amplifier_pkgenv.sources import DirectoryCatalogSource, HttpCatalogSource

CATALOG_URL = "https://catalog.example.org/packages.json"

FRENCH = {
    "name": "french-skill",
    "version": "1.2.0",
    "kind": "ability",
    "sourceRef": "git://x/french",
}


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# HttpCatalogSource
# ---------------------------------------------------------------------------


class TestHttpCatalogSource:
    def test_satisfies_protocol(self):
        assert isinstance(HttpCatalogSource(CATALOG_URL), CatalogSource)

    @pytest.mark.asyncio
    async def test_returns_json_array(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[FRENCH])

        source = HttpCatalogSource(CATALOG_URL, client=_client(handler))
        assert await source.fetch_entries() == [FRENCH]
        assert str(seen[0].url) == CATALOG_URL
        assert seen[0].headers["accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        source = HttpCatalogSource(
            CATALOG_URL, client=_client(lambda r: httpx.Response(503))
        )
        with pytest.raises(CatalogUnavailableError, match="503"):
            await source.fetch_entries()

    @pytest.mark.asyncio
    async def test_non_array_body(self):
        source = HttpCatalogSource(
            CATALOG_URL,
            client=_client(lambda r: httpx.Response(200, json={"packages": [FRENCH]})),
        )
        with pytest.raises(CatalogUnavailableError, match="JSON array"):
            await source.fetch_entries()

    @pytest.mark.asyncio
    async def test_invalid_json_body(self):
        source = HttpCatalogSource(
            CATALOG_URL,
            client=_client(lambda r: httpx.Response(200, content=b"<html>")),
        )
        with pytest.raises(CatalogUnavailableError, match="valid JSON"):
            await source.fetch_entries()

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        source = HttpCatalogSource(CATALOG_URL, client=_client(handler))
        with pytest.raises(CatalogUnavailableError, match="failed"):
            await source.fetch_entries()

    def test_info(self):
        assert HttpCatalogSource(CATALOG_URL).info() == {
            "type": "http",
            "url": CATALOG_URL,
        }


# ---------------------------------------------------------------------------
# DirectoryCatalogSource
# ---------------------------------------------------------------------------


class TestDirectoryCatalogSource:
    @pytest.mark.asyncio
    async def test_lists_manifests(self, tmp_path):
        pkg = tmp_path / "french"
        pkg.mkdir()
        (pkg / "package.yaml").write_text(
            "name: french-skill\nversion: 1.2.0\nkind: ability\n"
        )
        (tmp_path / "no-manifest").mkdir()

        entries = await DirectoryCatalogSource(tmp_path).fetch_entries()
        assert entries == [
            {
                "name": "french-skill",
                "version": "1.2.0",
                "kind": "ability",
                "sourceRef": str(pkg.resolve()),
            }
        ]

    @pytest.mark.asyncio
    async def test_name_defaults_to_directory(self, tmp_path):
        pkg = tmp_path / "weather"
        pkg.mkdir()
        (pkg / "package.yaml").write_text("version: '0.3'\nkind: app\n")
        entries = await DirectoryCatalogSource(tmp_path).fetch_entries()
        assert entries[0]["name"] == "weather"
        assert entries[0]["version"] == "0.3"

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        with pytest.raises(CatalogUnavailableError, match="not found"):
            await DirectoryCatalogSource(tmp_path / "nope").fetch_entries()

    @pytest.mark.asyncio
    async def test_broken_manifest(self, tmp_path):
        pkg = tmp_path / "bad"
        pkg.mkdir()
        (pkg / "package.yaml").write_text("name: [unclosed\n")
        with pytest.raises(CatalogUnavailableError):
            await DirectoryCatalogSource(tmp_path).fetch_entries()

    @pytest.mark.asyncio
    async def test_manifest_must_be_mapping(self, tmp_path):
        pkg = tmp_path / "list"
        pkg.mkdir()
        (pkg / "package.yaml").write_text("- a\n- b\n")
        with pytest.raises(CatalogUnavailableError, match="mapping"):
            await DirectoryCatalogSource(tmp_path).fetch_entries()

    @pytest.mark.asyncio
    async def test_scan_runs_in_worker_thread(self, tmp_path, monkeypatch):
        pkg = tmp_path / "french"
        pkg.mkdir()
        (pkg / "package.yaml").write_text("name: french-skill\nversion: 1.2.0\n")
        threads: list[int] = []
        real_safe_load = yaml.safe_load

        def recording_safe_load(stream):
            threads.append(threading.get_ident())
            return real_safe_load(stream)

        monkeypatch.setattr("amplifier_pkgenv.sources.directory.yaml.safe_load", recording_safe_load)
        entries = await DirectoryCatalogSource(tmp_path).fetch_entries()

        assert [e["name"] for e in entries] == ["french-skill"]
        assert threads and threading.get_ident() not in threads
