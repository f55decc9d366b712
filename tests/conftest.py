"""
Pytest configuration and shared fixtures for AppIngest tests.

This module provides reusable fixtures and test utilities used across
the test suite.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
import yaml

from appingest.api.groups import OrganizationGroup
from appingest.api.session import UemContext, make_session
from appingest.auth import basic_auth_header
from appingest.logging import SilentLogger, set_global_logger


@pytest.fixture(autouse=True)
def reset_global_logger():
    """Keep a logger installed by one test from leaking into the next."""
    set_global_logger(SilentLogger())
    yield
    set_global_logger(SilentLogger())


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def org_group() -> OrganizationGroup:
    """Provide the organization group used by the test context."""
    return OrganizationGroup(
        id=570,
        uuid="6f1f3c7e-0000-4000-8000-000000000570",
        name="Corp",
        country="Spain",
    )


@pytest.fixture
def context(org_group: OrganizationGroup) -> UemContext:
    """Provide a run context pointing at a fake UEM server."""
    return UemContext(
        server_url="https://uem.example.com",
        api_key="tenant-key",
        authorization=basic_auth_header("admin", "secret"),
        org_group=org_group,
        platform="WinRT",
    )


@pytest.fixture
def http(context: UemContext):
    """Provide an authenticated session (closed after the test)."""
    with make_session(context.api_key, context.authorization) as s:
        yield s


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("test.yaml", {"key": "value"})
    """

    def _create(filename: str, data: Any) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def create_descriptor(tmp_test_dir: Path):
    """
    Factory fixture for a descriptor file plus (optionally) its binary.

    Usage:
        path = create_descriptor("7zip.yaml", "7-Zip", "7z.MSI", size=1024,
                                 ActualFileVersion="23.1")

    When ``size`` is given, a binary of that many bytes is written to
    ``<tmp>/bin/<file_name>`` and FilePath points there.
    """
    bin_dir = tmp_test_dir / "bin"
    desc_dir = tmp_test_dir / "descriptors"

    def _create(
        filename: str,
        application_name: str,
        file_name: str,
        size: int | None = None,
        **fields: Any,
    ) -> Path:
        desc_dir.mkdir(parents=True, exist_ok=True)
        record: dict[str, Any] = {
            "ApplicationName": application_name,
            "FileName": file_name,
        }
        if size is not None:
            bin_dir.mkdir(parents=True, exist_ok=True)
            (bin_dir / file_name).write_bytes(bytes(i % 251 for i in range(size)))
            record["FilePath"] = str(bin_dir)
        elif not fields.get("UploadViaLink"):
            record["FilePath"] = str(bin_dir)
        record.update(fields)
        path = desc_dir / filename
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(record, f)
        return path

    return _create


@pytest.fixture
def query_params():
    """
    Decode the query string of a recorded requests_mock request.

    requests_mock lowercases its own qs view, so the URL is parsed directly.
    """

    def _parse(request) -> dict[str, str]:
        return {k: v[0] for k, v in parse_qs(urlparse(request.url).query).items()}

    return _parse
