"""
Tests for appingest.transfer.link module.

Tests link-based transfer including:
- HEAD probe acceptance rules (status and content type)
- No blob request for rejected links
- Blob request parameters and blob id parsing
"""

from __future__ import annotations

import pytest
import requests
import requests_mock

from appingest.exceptions import LinkRejectedError, SessionError, TransferError
from appingest.transfer.link import BLOB_UPLOAD_PATH, probe_link, upload_via_link

LINK = "https://cdn.example.com/downloads/7z2301-x64.msi"


class TestProbeLink:
    """Tests for the reachability probe."""

    def test_binary_content_type_accepted(self):
        """Test that 200 with application/* is accepted."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            probe = probe_link(LINK)

        assert probe.accepted
        assert probe.status_code == 200
        assert probe.reason == ""

    def test_content_type_prefix_is_case_insensitive(self):
        """Test that Application/x-msi also counts as binary."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "Application/x-msi"})
            assert probe_link(LINK).accepted

    def test_html_page_rejected(self):
        """Test that an HTML preview page is rejected."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "text/html; charset=utf-8"})
            probe = probe_link(LINK)

        assert not probe.accepted
        assert "text/html" in probe.reason

    def test_non_200_rejected(self):
        """Test that a 404 is rejected even with a binary content type."""
        with requests_mock.Mocker() as m:
            m.head(
                LINK,
                status_code=404,
                headers={"Content-Type": "application/octet-stream"},
            )
            probe = probe_link(LINK)

        assert not probe.accepted
        assert probe.status_code == 404

    def test_redirect_followed(self):
        """Test that the final response after redirects is judged."""
        start = "https://share.example.com/s/abc"
        with requests_mock.Mocker() as m:
            m.head(start, status_code=302, headers={"Location": LINK})
            m.head(LINK, headers={"Content-Type": "application/x-msdownload"})
            probe = probe_link(start)

        assert probe.accepted

    def test_unreachable_host_rejected(self):
        """Test that a connection failure is a rejection, not an exception."""
        with requests_mock.Mocker() as m:
            m.head(LINK, exc=requests.exceptions.ConnectionError("dns"))
            probe = probe_link(LINK)

        assert not probe.accepted
        assert probe.status_code is None


class TestUploadViaLink:
    """Tests for the blob-from-link request."""

    def test_rejected_link_sends_no_blob_request(self, context, http):
        """Test that a rejected probe stops before the blob call."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "text/html"})
            m.post(context.url(BLOB_UPLOAD_PATH), json={"Value": 1})
            with pytest.raises(LinkRejectedError):
                upload_via_link(context, http, LINK, "7z.msi")

        assert [r.method for r in m.request_history] == ["HEAD"]

    def test_blob_id_returned(self, context, http, query_params):
        """Test the blob request parameters and the returned id."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            m.post(context.url(BLOB_UPLOAD_PATH), json={"Value": 9001})
            blob_id = upload_via_link(context, http, LINK, "7z2301-x64.MSI")

        assert blob_id == 9001
        post = m.request_history[-1]
        assert post.method == "POST"
        assert query_params(post) == {
            "fileName": "7z2301-x64.MSI",
            "organizationGroupId": "570",
            "moduleType": "Application",
            "fileLink": LINK,
            "accessVia": "Direct",
        }

    def test_plain_integer_response(self, context, http):
        """Test that a bare integer body is accepted as the blob id."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            m.post(context.url(BLOB_UPLOAD_PATH), json=42)
            assert upload_via_link(context, http, LINK, "7z.msi") == 42

    def test_missing_blob_id(self, context, http):
        """Test that a response without an id is a transfer error."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            m.post(context.url(BLOB_UPLOAD_PATH), json={})
            with pytest.raises(TransferError, match="no blob id"):
                upload_via_link(context, http, LINK, "7z.msi")

    def test_server_error(self, context, http):
        """Test that a failed blob request is a transfer error."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            m.post(
                context.url(BLOB_UPLOAD_PATH),
                status_code=400,
                json={"message": "Link could not be downloaded"},
            )
            with pytest.raises(TransferError, match="Link could not be downloaded"):
                upload_via_link(context, http, LINK, "7z.msi")

    def test_auth_failure(self, context, http):
        """Test that HTTP 403 on the blob request ends the run."""
        with requests_mock.Mocker() as m:
            m.head(LINK, headers={"Content-Type": "application/octet-stream"})
            m.post(context.url(BLOB_UPLOAD_PATH), status_code=403)
            with pytest.raises(SessionError):
                upload_via_link(context, http, LINK, "7z.msi")
