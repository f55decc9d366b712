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

"""Existing-application resolution.

Before anything is uploaded, the server is asked which applications with the
same name already live in the organization group. The result set is then
reconciled against the candidate's file extension and version:

- **SKIP**: a record has the same extension and the same version string.
  Nothing is transferred.
- **CREATE_NEW**: no record exists, or none shares the candidate's
  extension (an EXE build of an app that only exists as MSI is a different
  application on the server).
- **CREATE_NEW_VERSION**: records share the extension, none the version.
  The new build is attached to the bundle id of the newest existing version.

Extensions are the last 4 characters of the file name and compare
case-sensitively, which is how the server matches them.

Example:
    Pure classification, no network:
        ```python
        from appingest.resolver import ExistingApplication, classify

        records = [ExistingApplication("7-Zip", "7z.MSI", "23.1", "b-1")]
        classify(".MSI", "24.0", records).decision  # CREATE_NEW_VERSION
        ```

    Search and classify:
        ```python
        resolution = resolve(context, http, descriptor)
        if resolution.decision is UploadDecision.SKIP:
            ...
        ```
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

import requests

from appingest.api.session import UemContext, json_object, require_success, send
from appingest.exceptions import NetworkError
from appingest.descriptors import ApplicationDescriptor, file_extension
from appingest.logging import get_global_logger
from appingest.versioning import version_key

APP_SEARCH_PATH = "/API/mam/apps/search"
DEFAULT_PAGE_SIZE = 500


class UploadDecision(str, Enum):
    """What to do with one descriptor."""

    SKIP = "skip"
    CREATE_NEW = "create_new"
    CREATE_NEW_VERSION = "create_new_version"


@dataclass(frozen=True)
class ExistingApplication:
    """An application record returned by the server search.

    Attributes:
        application_name: Application name.
        file_name: Uploaded file name.
        version: Version string as reported by the server.
        bundle_id: Server handle used to attach a new version.
    """

    application_name: str
    file_name: str
    version: str
    bundle_id: str

    @property
    def file_extension(self) -> str:
        return file_extension(self.file_name)


@dataclass(frozen=True)
class Resolution:
    """Upload decision plus the data needed to act on it.

    Attributes:
        decision: The classified UploadDecision.
        bundle_id: Anchor bundle id (CREATE_NEW_VERSION only).
        existing_version: Matching (SKIP) or newest (CREATE_NEW_VERSION)
            version on the server.
        matches: Records that shared the candidate's extension.
    """

    decision: UploadDecision
    bundle_id: str | None = None
    existing_version: str | None = None
    matches: tuple[ExistingApplication, ...] = field(default_factory=tuple)


def classify(
    extension: str, version: str, records: Iterable[ExistingApplication]
) -> Resolution:
    """Classify an upload from the candidate extension/version and a result set.

    This is a pure function of its inputs.

    Args:
        extension: Candidate file extension (last 4 characters).
        version: Candidate version string.
        records: Server records for the same application name.

    Returns:
        The Resolution. For CREATE_NEW_VERSION the anchor is the record with
        the highest version; records with equal versions keep server order,
        so the first one returned wins.
    """
    same_ext = tuple(r for r in records if r.file_extension == extension)
    if not same_ext:
        return Resolution(UploadDecision.CREATE_NEW)

    for record in same_ext:
        if record.version == version:
            return Resolution(
                UploadDecision.SKIP,
                existing_version=record.version,
                matches=same_ext,
            )

    # stable sort: among equal versions the first server record stays first
    anchor = sorted(same_ext, key=lambda r: version_key(r.version), reverse=True)[0]
    return Resolution(
        UploadDecision.CREATE_NEW_VERSION,
        bundle_id=anchor.bundle_id,
        existing_version=anchor.version,
        matches=same_ext,
    )


def _record_from_json(item: dict) -> ExistingApplication:
    return ExistingApplication(
        application_name=str(item.get("ApplicationName") or ""),
        file_name=str(item.get("ApplicationFileName") or item.get("FileName") or ""),
        version=str(item.get("AppVersion") or item.get("ActualFileVersion") or ""),
        bundle_id=str(item.get("BundleId") or ""),
    )


def search_applications(
    context: UemContext,
    http: requests.Session,
    application_name: str,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> list[ExistingApplication]:
    """Fetch every application in the group whose name matches exactly.

    Pages are requested until the reported Total has been collected or a
    page comes back short. HTTP 204 means no results.

    Raises:
        SessionError: On authentication or connectivity failure (fatal).
        NetworkError: On other non-success responses.
    """
    logger = get_global_logger()
    url = context.url(APP_SEARCH_PATH)
    items: list[dict] = []
    page = 0
    while True:
        resp = send(
            http,
            "GET",
            url,
            params={
                "applicationname": application_name,
                "locationgroupid": context.org_group.id,
                "platform": context.platform,
                "page": page,
                "pagesize": page_size,
            },
            action=f"app search for {application_name!r}",
        )
        if resp.status_code == 204:
            break
        require_success(resp, f"app search for {application_name!r}")
        body = json_object(resp, f"app search for {application_name!r}")
        batch = body.get("Application") or []
        if not isinstance(batch, list):
            raise NetworkError(
                f"app search for {application_name!r} failed: "
                "unexpected response (Application is not a list)",
                status_code=resp.status_code,
            )
        items.extend(batch)
        total = int(body.get("Total") or 0)
        logger.debug("RESOLVE", f"Page {page}: {len(batch)} record(s), total {total}")
        if not batch or len(batch) < page_size or len(items) >= total:
            break
        page += 1

    records = [_record_from_json(item) for item in items if isinstance(item, dict)]
    return [r for r in records if r.application_name == application_name]


def resolve(
    context: UemContext, http: requests.Session, descriptor: ApplicationDescriptor
) -> Resolution:
    """Search the server and classify one descriptor."""
    logger = get_global_logger()
    records = search_applications(context, http, descriptor.application_name)
    resolution = classify(
        descriptor.file_extension, descriptor.candidate_version, records
    )
    logger.verbose(
        "RESOLVE",
        f"{descriptor.application_name}: {len(records)} existing record(s), "
        f"decision {resolution.decision.value}",
    )
    return resolution
