"""
Tests for appingest.core module.

Tests the bulk ingestion workflow including:
- End-to-end run with create new, skip and create new version
- Per-descriptor failure isolation
- Session failures ending the run
- Context construction from the organization group search
"""

from __future__ import annotations

import pytest
import requests_mock

from appingest.api.groups import GROUP_SEARCH_PATH
from appingest.config import Settings
from appingest.core import build_context, ingest_directory
from appingest.creation import CREATE_APPLICATION_PATH
from appingest.exceptions import SelectionCancelled, SessionError
from appingest.logging import get_logger, set_global_logger
from appingest.resolver import APP_SEARCH_PATH
from appingest.transfer.chunked import UPLOAD_CHUNK_PATH
from appingest.transfer.link import BLOB_UPLOAD_PATH

KIB = 1024


def _app(name: str, file_name: str, version: str, bundle: str) -> dict:
    return {
        "ApplicationName": name,
        "ApplicationFileName": file_name,
        "AppVersion": version,
        "BundleId": bundle,
    }


def _register_search(m, context, name: str, records: list[dict] | None) -> None:
    url = f"{context.url(APP_SEARCH_PATH)}?applicationname={name}"
    if records is None:
        m.get(url, status_code=204)
    else:
        m.get(url, json={"Application": records, "Total": len(records)})


def _posts(m, path_suffix: str) -> list:
    return [
        r
        for r in m.request_history
        if r.method == "POST" and r.path.endswith(path_suffix.lower())
    ]


class TestIngestDirectory:
    """Tests for ingest_directory against a mocked server."""

    def test_new_skip_and_new_version(self, context, create_descriptor):
        """Test the three upload decisions in one run."""
        create_descriptor(
            "a_alpha.yaml", "Alpha", "alpha.MSI", size=25 * KIB, ActualFileVersion="1.0"
        )
        create_descriptor(
            "b_bravo.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="2.0"
        )
        path = create_descriptor(
            "c_charlie.yaml", "Charlie", "charlie.ZIP", size=100, ActualFileVersion="3.1"
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            _register_search(
                m, context, "Bravo", [_app("Bravo", "bravo.EXE", "2.0", "bundle-b")]
            )
            _register_search(
                m,
                context,
                "Charlie",
                [
                    _app("Charlie", "charlie.ZIP", "2.9", "bundle-c-old"),
                    _app("Charlie", "charlie.ZIP", "3.0", "bundle-c"),
                ],
            )
            m.post(
                context.url(UPLOAD_CHUNK_PATH),
                json={"TranscationId": "tx-42", "UploadSuccess": True},
            )
            m.post(context.url(CREATE_APPLICATION_PATH), json={"Id": {"Value": 101}})

            summary = ingest_directory(path.parent, context, chunk_size=10 * KIB)

        assert [r.status for r in summary.results] == ["created", "skipped", "created"]
        assert [r.decision for r in summary.results] == [
            "create_new",
            "skip",
            "create_new_version",
        ]
        assert summary.created == 2
        assert summary.skipped == 1
        assert summary.failed == 0
        assert "already exists" in summary.results[1].reason

        chunk_bodies = [r.json() for r in _posts(m, UPLOAD_CHUNK_PATH)]
        # Alpha: 3 chunks, Bravo: none, Charlie: 1 chunk
        assert len(chunk_bodies) == 4
        assert [b["ChunkSize"] for b in chunk_bodies[:3]] == [10 * KIB, 10 * KIB, 5 * KIB]
        assert chunk_bodies[3]["TotalApplicationSize"] == 100

        creates = [r.json() for r in _posts(m, CREATE_APPLICATION_PATH)]
        assert [c["ApplicationName"] for c in creates] == ["Alpha", "Charlie"]
        assert creates[0]["TransactionId"] == "tx-42"
        assert "BundleId" not in creates[0]
        assert creates[1]["BundleId"] == "bundle-c"
        assert all(c["LocationGroupId"] == 570 for c in creates)
        assert all("FilePath" not in c for c in creates)

    def test_failed_creation_does_not_stop_run(self, context, create_descriptor):
        """Test that a rejected creation fails only that descriptor."""
        create_descriptor("a.yaml", "Alpha", "alpha.EXE", size=10, ActualFileVersion="1")
        path = create_descriptor(
            "b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1"
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            _register_search(m, context, "Bravo", None)
            m.post(context.url(UPLOAD_CHUNK_PATH), json={"TransactionId": "tx"})
            m.post(
                context.url(CREATE_APPLICATION_PATH),
                [
                    {"status_code": 400, "json": {"message": "Invalid DeviceType"}},
                    {"json": {"Id": {"Value": 2}}},
                ],
            )
            summary = ingest_directory(path.parent, context)

        assert [r.status for r in summary.results] == ["failed", "created"]
        assert "Invalid DeviceType" in summary.results[0].reason
        assert "HTTP 400" in summary.results[0].reason

    def test_failed_transfer_skips_creation(self, context, create_descriptor):
        """Test that an aborted transfer never reaches the create call."""
        path = create_descriptor(
            "a.yaml", "Alpha", "alpha.EXE", size=25 * KIB, ActualFileVersion="1"
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            m.post(
                context.url(UPLOAD_CHUNK_PATH),
                [{"json": {"TransactionId": "tx-1"}}, {"status_code": 500}],
            )
            m.post(context.url(CREATE_APPLICATION_PATH), json={"Id": 1})
            summary = ingest_directory(path.parent, context, chunk_size=10 * KIB)

        assert summary.results[0].status == "failed"
        assert "transfer aborted" in summary.results[0].reason
        assert len(_posts(m, UPLOAD_CHUNK_PATH)) == 2
        assert _posts(m, CREATE_APPLICATION_PATH) == []

    def test_missing_local_file(self, context, create_descriptor):
        """Test that a missing binary fails without any transfer."""
        path = create_descriptor("a.yaml", "Alpha", "alpha.EXE", ActualFileVersion="1")

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            m.post(context.url(UPLOAD_CHUNK_PATH), json={"TransactionId": "tx"})
            summary = ingest_directory(path.parent, context)

        assert summary.results[0].status == "failed"
        assert "local file not found" in summary.results[0].reason
        assert _posts(m, UPLOAD_CHUNK_PATH) == []

    def test_rejected_link_is_skipped(self, context, create_descriptor):
        """Test that a non-direct link is skipped without a blob request."""
        url = "https://share.example.com/view/alpha"
        path = create_descriptor(
            "a.yaml",
            "Alpha",
            "alpha.MSI",
            UploadViaLink=True,
            ApplicationUrl=url,
            ActualFileVersion="1",
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            m.head(url, headers={"Content-Type": "text/html"})
            m.post(context.url(BLOB_UPLOAD_PATH), json={"Value": 1})
            summary = ingest_directory(path.parent, context)

        assert summary.results[0].status == "skipped"
        assert "link upload skipped" in summary.results[0].reason
        assert _posts(m, BLOB_UPLOAD_PATH) == []

    def test_link_upload_creates_with_blob(self, context, create_descriptor):
        """Test the link path end to end."""
        url = "https://cdn.example.com/alpha.msi"
        path = create_descriptor(
            "a.yaml",
            "Alpha",
            "alpha.MSI",
            UploadViaLink=True,
            ApplicationUrl=url,
            ActualFileVersion="1",
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            m.head(url, headers={"Content-Type": "application/octet-stream"})
            m.post(context.url(BLOB_UPLOAD_PATH), json={"Value": 9001})
            m.post(context.url(CREATE_APPLICATION_PATH), json={"Id": {"Value": 5}})
            summary = ingest_directory(path.parent, context)

        assert summary.results[0].status == "created"
        assert summary.results[0].application_id == 5
        create = _posts(m, CREATE_APPLICATION_PATH)[0].json()
        assert create["BlobId"] == 9001
        assert "TransactionId" not in create

    def test_invalid_descriptor_reported_by_file(self, context, create_descriptor):
        """Test that an unloadable descriptor fails by file name."""
        path = create_descriptor("b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1")
        (path.parent / "a_broken.yaml").write_text("FileName: x.EXE\n", encoding="utf-8")

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Bravo", [_app("Bravo", "bravo.EXE", "1", "b")])
            summary = ingest_directory(path.parent, context)

        assert [r.application_name for r in summary.results] == ["a_broken.yaml", "Bravo"]
        assert [r.status for r in summary.results] == ["failed", "skipped"]
        assert "invalid descriptor" in summary.results[0].reason

    def test_search_failure_is_per_descriptor(self, context, create_descriptor):
        """Test that a 500 on search fails only that descriptor."""
        create_descriptor("a.yaml", "Alpha", "alpha.EXE", size=10, ActualFileVersion="1")
        path = create_descriptor("b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1")

        with requests_mock.Mocker() as m:
            m.get(f"{context.url(APP_SEARCH_PATH)}?applicationname=Alpha", status_code=500)
            _register_search(m, context, "Bravo", [_app("Bravo", "bravo.EXE", "1", "b")])
            summary = ingest_directory(path.parent, context)

        assert [r.status for r in summary.results] == ["failed", "skipped"]
        assert "search failed" in summary.results[0].reason

    def test_non_json_search_reply_is_per_descriptor(self, context, create_descriptor):
        """Test that an HTML page served with 200 fails only that descriptor."""
        create_descriptor("a.yaml", "Alpha", "alpha.EXE", size=10, ActualFileVersion="1")
        path = create_descriptor("b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1")

        with requests_mock.Mocker() as m:
            m.get(
                f"{context.url(APP_SEARCH_PATH)}?applicationname=Alpha",
                text="<html>maintenance</html>",
            )
            _register_search(m, context, "Bravo", [_app("Bravo", "bravo.EXE", "1", "b")])
            summary = ingest_directory(path.parent, context)

        assert [r.status for r in summary.results] == ["failed", "skipped"]
        assert summary.failed == 1
        assert "unexpected response" in summary.results[0].reason

    def test_auth_failure_ends_run(self, context, create_descriptor):
        """Test that HTTP 401 propagates and later descriptors are not touched."""
        create_descriptor("a.yaml", "Alpha", "alpha.EXE", size=10, ActualFileVersion="1")
        path = create_descriptor("b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1")

        with requests_mock.Mocker() as m:
            m.get(context.url(APP_SEARCH_PATH), status_code=401)
            with pytest.raises(SessionError):
                ingest_directory(path.parent, context)

        assert m.call_count == 1

    def test_progress_output(self, context, create_descriptor, capsys):
        """Test the step and skip lines printed by the default logger."""
        set_global_logger(get_logger())
        path = create_descriptor("b.yaml", "Bravo", "bravo.EXE", size=10, ActualFileVersion="1")

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Bravo", [_app("Bravo", "bravo.EXE", "1", "b")])
            ingest_directory(path.parent, context)

        out = capsys.readouterr().out
        assert "[1/1] Bravo (bravo.EXE)" in out
        assert "[INFO] Bravo:" in out

    def test_rejected_link_is_reported_as_warning(self, context, create_descriptor, capsys):
        """Test that a skipped link prints a warning line, not an info line."""
        set_global_logger(get_logger())
        url = "https://share.example.com/view/alpha"
        path = create_descriptor(
            "a.yaml",
            "Alpha",
            "alpha.MSI",
            UploadViaLink=True,
            ApplicationUrl=url,
            ActualFileVersion="1",
        )

        with requests_mock.Mocker() as m:
            _register_search(m, context, "Alpha", None)
            m.head(url, headers={"Content-Type": "text/html"})
            ingest_directory(path.parent, context)

        out = capsys.readouterr().out
        assert "[WARNING] Alpha: link upload skipped" in out
        assert "[INFO] Alpha:" not in out


class TestBuildContext:
    """Tests for build_context."""

    def _settings(self, group: str = "Corp") -> Settings:
        return Settings(
            server_url="https://uem.example.com",
            username="admin",
            password="secret",
            api_key="tenant-key",
            org_group=group,
            platform="WinRT",
        )

    def test_context_from_group_search(self):
        """Test that the selected group lands in the context."""
        body = {"LocationGroups": [{"Id": {"Value": 570}, "Uuid": "u", "Name": "Corp"}]}
        with requests_mock.Mocker() as m:
            m.get("https://uem.example.com" + GROUP_SEARCH_PATH, json=body)
            ctx = build_context(self._settings())

        assert ctx.org_group.id == 570
        assert ctx.authorization.startswith("Basic ")
        assert ctx.url("/API/x") == "https://uem.example.com/API/x"
        assert m.request_history[0].headers["aw-tenant-code"] == "tenant-key"

    def test_bad_credentials(self):
        """Test that a 401 on the group search raises SessionError."""
        with requests_mock.Mocker() as m:
            m.get("https://uem.example.com" + GROUP_SEARCH_PATH, status_code=401)
            with pytest.raises(SessionError):
                build_context(self._settings())

    def test_cancelled_selection(self):
        """Test that cancelling among several groups aborts."""
        body = {
            "LocationGroups": [
                {"Id": {"Value": 1}, "Uuid": "a", "Name": "Corp EU"},
                {"Id": {"Value": 2}, "Uuid": "b", "Name": "Corp US"},
            ]
        }
        with requests_mock.Mocker() as m:
            m.get("https://uem.example.com" + GROUP_SEARCH_PATH, json=body)
            with pytest.raises(SelectionCancelled):
                build_context(self._settings(), chooser=lambda groups: None)
