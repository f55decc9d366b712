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

"""Authenticated HTTP session for the UEM REST API.

Every request to the UEM server carries the same three headers: the tenant
API key (aw-tenant-code), a Basic Authorization header and JSON content
negotiation. This module owns those headers, the immutable run context and
the translation of transport and status failures into AppIngest exceptions.

Failure translation:

- Connection failures (DNS, refused, TLS) -> SessionError (fatal)
- HTTP 401 / 403 -> SessionError (fatal)
- Any other non-2xx -> NetworkError, carrying the server message verbatim

Example:
    Open a session and call an endpoint:
        ```python
        from appingest.api.session import make_session, send

        with make_session(api_key, authorization) as http:
            resp = send(http, "GET", context.url("/API/system/info"),
                        action="server info")
        ```

Notes:
- No retry adapter is mounted: every request is attempted exactly once
- No client-side timeout is set; the platform default applies
- Requests are strictly sequential; a session is never shared across threads
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import requests

from appingest import __version__
from appingest.exceptions import NetworkError, SessionError
from appingest.logging import get_global_logger

if TYPE_CHECKING:
    from appingest.api.groups import OrganizationGroup

TENANT_HEADER = "aw-tenant-code"
AUTH_STATUSES = (401, 403)


@dataclass(frozen=True)
class UemContext:
    """Immutable session context shared read-only by every component.

    Attributes:
        server_url: Normalized base URL ("https://host").
        api_key: Tenant REST API key.
        authorization: Full Basic Authorization header value.
        org_group: Organization group apps are searched and created in.
        platform: Platform filter for application search (e.g., "WinRT").
    """

    server_url: str
    api_key: str = field(repr=False)
    authorization: str = field(repr=False)
    org_group: OrganizationGroup
    platform: str = "WinRT"

    def url(self, path: str) -> str:
        """Join an API path ("/API/...") onto the server URL."""
        return f"{self.server_url}{path}"


def make_session(api_key: str, authorization: str) -> requests.Session:
    """
    Create a requests.Session preloaded with the UEM authentication headers.

    The caller owns the session and must close it, normally with a
    ``with`` block so connections are released on every exit path.
    """
    s = requests.Session()
    s.headers.update(
        {
            TENANT_HEADER: api_key,
            "Authorization": authorization,
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"appingest/{__version__}",
        }
    )
    return s


def server_message(resp: requests.Response) -> str:
    """
    Extract the human-readable message from a UEM error envelope.

    The server answers errors with {"errorCode": ..., "message": "..."};
    anything else falls back to the raw body text.
    """
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip()
    if isinstance(body, dict):
        for key in ("message", "Message", "errorMessage", "ErrorMessage"):
            value = body.get(key)
            if value:
                return str(value)
    return resp.text.strip()


def send(
    http: requests.Session,
    method: str,
    url: str,
    *,
    action: str,
    **kwargs: Any,
) -> requests.Response:
    """Send one request and translate session-level failures.

    Args:
        http: Session from make_session().
        method: HTTP method.
        url: Absolute URL.
        action: Short description used in error messages (e.g., "app search").
        **kwargs: Passed through to requests (params, json, ...).

    Returns:
        The response. Statuses other than 401/403 are NOT checked here so
        callers can interpret their own success envelopes.

    Raises:
        SessionError: On connection failures or HTTP 401/403.
        NetworkError: On other transport failures.
    """
    logger = get_global_logger()
    logger.debug("HTTP", f"{method} {url}")
    try:
        resp = http.request(method, url, **kwargs)
    except requests.ConnectionError as err:
        raise SessionError(f"{action} failed: cannot reach {url}: {err}") from err
    except requests.RequestException as err:
        raise NetworkError(f"{action} failed: {err}") from err

    logger.debug("HTTP", f"Response: {resp.status_code} {resp.reason}")
    if resp.status_code in AUTH_STATUSES:
        raise SessionError(
            f"{action} failed: authentication rejected "
            f"(HTTP {resp.status_code}): {server_message(resp)}",
            status_code=resp.status_code,
        )
    return resp


def require_success(resp: requests.Response, action: str) -> None:
    """Raise NetworkError for any non-2xx response, with the server message."""
    if not resp.ok:
        raise NetworkError(
            f"{action} failed (HTTP {resp.status_code}): {server_message(resp)}",
            status_code=resp.status_code,
        )


def json_object(resp: requests.Response, action: str) -> dict[str, Any]:
    """Decode a 2xx response body that must be a JSON object.

    Raises:
        NetworkError: If the body is not JSON or not an object (for example
            an HTML maintenance page served with HTTP 200).
    """
    try:
        body = resp.json()
    except ValueError as err:
        raise NetworkError(
            f"{action} failed: unexpected response (not JSON): {resp.text.strip()[:200]}",
            status_code=resp.status_code,
        ) from err
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise NetworkError(
            f"{action} failed: unexpected response (expected an object, "
            f"got {type(body).__name__})",
            status_code=resp.status_code,
        )
    return body
