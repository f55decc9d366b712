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

"""Create-application call.

Once the binary is on the server, the descriptor metadata is posted to the
create-application endpoint together with a reference to the binary:

- TransactionId for the chunked path, or
- BlobId for the link path,

and BundleId when the application is a new version of an existing one.

Installer Version Fields:

For MSI packages uploaded through the chunked path the server reads the
version from the binary. Any structured version fields in the detection
criteria (MajorVersion, MinorVersion, BuildNumber, RevisionNumber) are
therefore sent as empty strings, whatever the descriptor says; a
precomputed value is rejected or ignored by the server. Link uploads keep
their values.

A rejected creation is reported in the returned CreationResult with the
server message verbatim; it does not end the run.
"""

from __future__ import annotations

import copy
from typing import Any

import requests

from appingest.api.groups import unwrap_id
from appingest.api.session import UemContext, send, server_message
from appingest.descriptors import (
    STRUCTURED_VERSION_KEYS,
    ApplicationDescriptor,
    iter_app_criteria,
)
from appingest.exceptions import NetworkError, SessionError
from appingest.logging import get_global_logger
from appingest.results import CreationResult

CREATE_APPLICATION_PATH = "/API/mam/apps/internal/application"


def clear_structured_version(payload: dict[str, Any]) -> None:
    """Set every structured version field in the payload's criteria to ""."""
    for app_criteria in iter_app_criteria(payload):
        for key in STRUCTURED_VERSION_KEYS:
            app_criteria[key] = ""


def build_creation_payload(
    descriptor: ApplicationDescriptor,
    context: UemContext,
    *,
    transaction_id: str | None = None,
    blob_id: int | None = None,
    bundle_id: str | None = None,
) -> dict[str, Any]:
    """Assemble the create-application body for one descriptor.

    Args:
        descriptor: Loaded descriptor (its metadata is not modified).
        context: Run context.
        transaction_id: Final chunk transaction id (chunked path).
        blob_id: Blob id (link path).
        bundle_id: Anchor bundle id when creating a new version.

    Returns:
        A new dict ready to be sent as JSON.

    Raises:
        ValueError: If not exactly one of transaction_id / blob_id is given.
    """
    if (transaction_id is None) == (blob_id is None):
        raise ValueError("exactly one of transaction_id or blob_id is required")

    payload = copy.deepcopy(descriptor.metadata)
    payload["ApplicationName"] = descriptor.application_name
    payload["FileName"] = descriptor.file_name
    payload["UploadViaLink"] = descriptor.upload_via_link
    payload["LocationGroupId"] = context.org_group.id
    if transaction_id is not None:
        payload["TransactionId"] = transaction_id
        payload.pop("BlobId", None)
    else:
        payload["BlobId"] = blob_id
        payload.pop("TransactionId", None)
    if bundle_id:
        payload["BundleId"] = bundle_id

    if descriptor.is_installer and not descriptor.upload_via_link:
        clear_structured_version(payload)
    return payload


def _envelope_failed(body: dict[str, Any]) -> bool:
    # error envelope: {"errorCode": ..., "message": ...}
    if body.get("errorCode") not in (None, 0, "", "0"):
        return True
    for key in ("Success", "success", "IsSuccess"):
        if body.get(key) is False:
            return True
    return False


def create_application(
    context: UemContext,
    http: requests.Session,
    payload: dict[str, Any],
) -> CreationResult:
    """Post the payload to the create-application endpoint.

    Returns:
        CreationResult. success is False for any non-2xx status, with the
        server message verbatim.

    Raises:
        SessionError: On authentication or connectivity failure.
    """
    logger = get_global_logger()
    name = payload.get("ApplicationName", "")
    try:
        resp = send(
            http,
            "POST",
            context.url(CREATE_APPLICATION_PATH),
            json=payload,
            action=f"create application {name!r}",
        )
    except SessionError:
        raise
    except NetworkError as err:
        return CreationResult(success=False, status_code=0, message=str(err))

    if not resp.ok:
        message = server_message(resp)
        logger.debug("CREATE", f"{name}: HTTP {resp.status_code}: {message}")
        return CreationResult(
            success=False, status_code=resp.status_code, message=message
        )

    application_id = None
    message = ""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and _envelope_failed(body):
        message = server_message(resp)
        logger.debug("CREATE", f"{name}: HTTP {resp.status_code} failure envelope: {message}")
        return CreationResult(
            success=False, status_code=resp.status_code, message=message
        )
    if isinstance(body, dict):
        try:
            application_id = unwrap_id(body.get("Id"))
        except (TypeError, ValueError):
            application_id = None
        message = str(body.get("message") or body.get("Message") or "")
    logger.verbose("CREATE", f"{name}: HTTP {resp.status_code}, id {application_id}")
    return CreationResult(
        success=True,
        status_code=resp.status_code,
        message=message,
        application_id=application_id,
    )
