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

"""Exception hierarchy for AppIngest.

The hierarchy mirrors how a bulk run reacts to a failure:

- ConfigError: Bad settings or descriptor content. Per-descriptor when raised
  while loading a descriptor, fatal when raised while resolving settings.
- NetworkError: A request to the UEM server failed. Per-descriptor.
- SessionError: Authentication or connectivity failure. Fatal for the run,
  since every later request would fail the same way.
- TransferError: A chunked or link transfer failed. Fatal for the current
  file only.
- LinkRejectedError: A link source is not directly downloadable. Reported
  as a warning.
- SelectionCancelled: The operator cancelled organization group selection.

All exceptions inherit from AppIngestError.

Example:
    Separating fatal from per-descriptor errors:
        ```python
        from appingest.exceptions import AppIngestError, SessionError

        try:
            summary = ingest_descriptors(descriptors, context)
        except SessionError as e:
            print(f"Run aborted: {e}")
        except AppIngestError as e:
            print(f"Error: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "AppIngestError",
    "ConfigError",
    "NetworkError",
    "SessionError",
    "TransferError",
    "LinkRejectedError",
    "SelectionCancelled",
]


class AppIngestError(Exception):
    """Base exception for all AppIngest errors."""

    pass


class ConfigError(AppIngestError):
    """Raised for settings and descriptor problems.

    This exception is raised when there are problems with:

    - YAML/JSON parsing of descriptor or settings files
    - Missing or invalid descriptor fields
    - Invalid settings values (chunk size, server URL)
    - Organization group names that match nothing on the server
    """

    pass


class NetworkError(AppIngestError):
    """Raised when a UEM API request fails.

    Carries the HTTP status code when the server answered at all, so callers
    can tell a rejected request from an unreachable server.

    Attributes:
        status_code: HTTP status of the failed response, or None.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SessionError(NetworkError):
    """Raised when the authenticated session is unusable.

    Authentication failures (HTTP 401/403) and connection failures end the
    whole run: the credentials or server are presumed invalid for every
    remaining descriptor.
    """

    pass


class TransferError(NetworkError):
    """Raised when a binary transfer fails.

    Any chunk failure aborts the transfer of that file. Nothing is retried
    and the file is not attempted again in the same run.
    """

    pass


class LinkRejectedError(AppIngestError):
    """Raised when a link source fails the reachability probe.

    Storage providers often answer with an HTML login or preview page instead
    of the file itself. This is an expected condition and is reported as a
    warning, not an error.
    """

    pass


class SelectionCancelled(AppIngestError):
    """Raised when the operator cancels organization group selection."""

    pass
