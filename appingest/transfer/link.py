# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Link-based transfer: let the UEM server fetch the binary itself.

Instead of pushing bytes, the client hands the server a public URL and gets
a blob id back. This only works when the URL serves the file directly, so
the link is probed first with a HEAD request:

- status must be 200 (after redirects), and
- Content-Type must start with "application" (application/octet-stream,
  application/x-msi, ...).

Storage providers that do not expose direct file links typically answer
with an HTML preview or login page; those links are rejected with
LinkRejectedError and no blob request is made. A rejected link is an
expected condition that the orchestrator reports as a warning.

The probe is sent without the UEM credentials: the link usually points to a
third-party host.

Example:
    ```python
    from appingest.transfer import upload_via_link

    blob_id = upload_via_link(
        context, http, "https://cdn.example.com/7z.msi", "7z.msi"
    )
    ```
"""

from __future__ import annotations

from dataclasses import dataclass

import requests

from appingest.api.groups import unwrap_id
from appingest.api.session import AUTH_STATUSES, UemContext, send, server_message
from appingest.exceptions import (
    LinkRejectedError,
    NetworkError,
    SessionError,
    TransferError,
)
from appingest.logging import get_global_logger

BLOB_UPLOAD_PATH = "/API/mam/blobs/uploadblob"


@dataclass(frozen=True)
class LinkProbe:
    """Outcome of the reachability probe.

    Attributes:
        url: Probed URL.
        accepted: True when the link serves a binary payload directly.
        status_code: Final HTTP status, or None if the host was unreachable.
        content_type: Content-Type header of the final response.
        reason: Why the link was rejected (empty when accepted).
    """

    url: str
    accepted: bool
    status_code: int | None = None
    content_type: str = ""
    reason: str = ""


def probe_link(url: str) -> LinkProbe:
    """Check that a URL serves a binary file directly (HEAD request)."""
    logger = get_global_logger()
    logger.debug("HTTP", f"HEAD {url}")
    try:
        with requests.Session() as s:
            resp = s.head(url, allow_redirects=True)
    except requests.RequestException as err:
        return LinkProbe(url=url, accepted=False, reason=f"unreachable: {err}")

    content_type = resp.headers.get("Content-Type", "")
    logger.debug("HTTP", f"Response: {resp.status_code}, Content-Type: {content_type!r}")
    if resp.status_code != 200:
        return LinkProbe(
            url=url,
            accepted=False,
            status_code=resp.status_code,
            content_type=content_type,
            reason=f"HTTP {resp.status_code}",
        )
    if not content_type.strip().lower().startswith("application"):
        return LinkProbe(
            url=url,
            accepted=False,
            status_code=resp.status_code,
            content_type=content_type,
            reason=f"content type {content_type or '(none)'!s} is not a binary payload",
        )
    return LinkProbe(
        url=url, accepted=True, status_code=resp.status_code, content_type=content_type
    )


def upload_via_link(
    context: UemContext,
    http: requests.Session,
    url: str,
    file_name: str,
) -> int:
    """Ask the server to create a blob by fetching ``url``.

    Args:
        context: Run context (supplies the organization group id).
        http: Authenticated session.
        url: Publicly reachable link to the binary.
        file_name: File name the blob is stored under.

    Returns:
        The blob id assigned by the server.

    Raises:
        LinkRejectedError: If the probe rejects the link. No blob request
            is sent in that case.
        TransferError: If the blob request fails or returns no id.
        SessionError: On authentication failure.
    """
    logger = get_global_logger()
    probe = probe_link(url)
    if not probe.accepted:
        raise LinkRejectedError(f"{url} is not a direct download link ({probe.reason})")

    action = f"blob upload from link for {file_name}"
    try:
        resp = send(
            http,
            "POST",
            context.url(BLOB_UPLOAD_PATH),
            params={
                "fileName": file_name,
                "organizationGroupId": context.org_group.id,
                "moduleType": "Application",
                "fileLink": url,
                "accessVia": "Direct",
            },
            action=action,
        )
    except SessionError as err:
        if err.status_code in AUTH_STATUSES:
            raise
        raise TransferError(str(err)) from err
    except NetworkError as err:
        raise TransferError(str(err), status_code=err.status_code) from err

    if not resp.ok:
        raise TransferError(
            f"{action} failed (HTTP {resp.status_code}): {server_message(resp)}",
            status_code=resp.status_code,
        )
    try:
        blob_id = unwrap_id(resp.json())
    except (ValueError, TypeError) as err:
        raise TransferError(f"{action}: unexpected response {resp.text!r}") from err
    if blob_id is None:
        raise TransferError(f"{action}: server returned no blob id")

    logger.verbose("LINK", f"Blob {blob_id} created from {url}")
    return blob_id
