"""Tests for shared models and the error taxonomy."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from amplifier_pkgenv.errors import (
    CatalogUnavailableError,
    InstallTimeoutError,
    InvalidNameError,
    PackageNotInstalledError,
    PkgEnvError,
)
from amplifier_pkgenv.models import CatalogEntry, ErrorInfo, Package, PackageKind


class TestCatalogEntry:
    def test_accepts_wire_field_names(self):
        entry = CatalogEntry.model_validate(
            {"name": "french-skill", "version": "1.2.0", "kind": "ability", "sourceRef": "git://x/french"}
        )
        assert entry.source_ref == "git://x/french"
        assert entry.kind is PackageKind.ABILITY

    def test_rejects_unknown_kind(self):
        with pytest.raises(ValidationError):
            CatalogEntry(name="a", version="1", kind="plugin", source_ref="s")

    def test_rejects_empty_version(self):
        with pytest.raises(ValidationError):
            CatalogEntry(name="a", version="", kind="app", source_ref="s")

    def test_is_hashable(self):
        entry = CatalogEntry(name="a", version="1", kind="app", source_ref="s")
        assert len({entry, entry}) == 1


class TestPackage:
    def test_from_entry_and_record(self):
        entry = CatalogEntry(name="weather", version="0.3.1", kind="app", source_ref="git://x/w")
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        pkg = Package.from_entry(entry, "research", when)
        assert pkg.environment == "research"
        assert pkg.to_record() == {
            "version": "0.3.1",
            "kind": "app",
            "source_ref": "git://x/w",
            "installed_at": "2024-05-01T00:00:00+00:00",
        }


class TestErrors:
    def test_all_errors_share_base(self):
        assert issubclass(InvalidNameError, PkgEnvError)
        assert issubclass(InvalidNameError, ValueError)
        assert issubclass(PackageNotInstalledError, LookupError)

    def test_operation_error_info(self):
        err = PackageNotInstalledError("Package 'x' is not installed", environment="research")
        info = err.to_error_info()
        assert isinstance(info, ErrorInfo)
        assert info.to_dict() == {
            "error_type": "operation",
            "error_code": "package_not_installed",
            "message": "Package 'x' is not installed",
            "retriable": False,
            "environment": "research",
        }

    def test_transport_error_is_retriable(self):
        info = CatalogUnavailableError("down").to_error_info()
        assert info.error_type == "transport"
        assert info.retriable is True
        assert info.environment is None

    def test_timeout_is_install_error_subclass(self):
        err = InstallTimeoutError("slow")
        assert err.error_code == "install_timeout"
        assert err.retriable is True

    def test_error_type_validation(self):
        with pytest.raises(ValueError):
            ErrorInfo(error_type="invalid", error_code="x", message="m")
