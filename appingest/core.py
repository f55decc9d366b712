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

"""Core orchestration for AppIngest.

This module runs the bulk ingestion loop. Descriptors are processed one at a
time, each to completion, before the next one starts:

1. **Resolve** - search the organization group for applications with the
   same name and classify the upload (skip / create new / new version).
2. **Transfer** - chunked upload of the local file, or server-side fetch of
   the link, depending on UploadViaLink.
3. **Create** - post the metadata with the transaction id or blob id (and
   the anchor bundle id for new versions).

Failure Handling:

- SessionError (authentication or connectivity) propagates and ends the run.
- Everything else is recorded against the current descriptor and the loop
  moves on: unloadable descriptors, missing local files, rejected links,
  failed transfers and rejected creations.
- Every skipped or failed descriptor is reported by name with its reason.

Example:
    Programmatic usage:
        ```python
        from pathlib import Path
        from appingest.core import build_context, ingest_directory

        context = build_context(settings)
        summary = ingest_directory(Path("./apps"), context)
        print(summary.created, summary.skipped, summary.failed)
        ```

"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

import requests

from appingest.api.groups import OrganizationGroup, search_groups, select_group
from appingest.api.session import UemContext, make_session
from appingest.auth import basic_auth_header
from appingest.config import Settings
from appingest.creation import build_creation_payload, create_application
from appingest.descriptors import (
    ApplicationDescriptor,
    discover_descriptor_files,
    load_defaults,
    parse_descriptor,
    read_record,
)
from appingest.exceptions import (
    ConfigError,
    LinkRejectedError,
    NetworkError,
    SessionError,
    TransferError,
)
from appingest.logging import get_global_logger
from appingest.resolver import UploadDecision, resolve
from appingest.results import (
    STATUS_CREATED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    IngestResult,
    IngestSummary,
)
from appingest.transfer import DEFAULT_CHUNK_SIZE, upload_chunked, upload_via_link


def build_context(
    settings: Settings,
    chooser: Callable[[list[OrganizationGroup]], OrganizationGroup | None] | None = None,
) -> UemContext:
    """Authenticate against the group search and build the run context.

    The organization group search doubles as the credential check: a 401/403
    or an unreachable server raises SessionError before any descriptor is
    touched.

    Args:
        settings: Resolved settings.
        chooser: Picks a group when several match (interactive by default).

    Returns:
        The immutable UemContext for the run.

    Raises:
        SessionError: On authentication or connectivity failure.
        ConfigError: If no organization group matches.
        SelectionCancelled: If the operator cancels the selection.
    """
    logger = get_global_logger()
    authorization = basic_auth_header(settings.username, settings.password)
    with make_session(settings.api_key, authorization) as http:
        groups = search_groups(http, settings.server_url, settings.org_group)
    group = select_group(groups, settings.org_group, chooser=chooser)
    logger.verbose("GROUP", f"Using organization group {group.name!r} (id {group.id})")
    return UemContext(
        server_url=settings.server_url,
        api_key=settings.api_key,
        authorization=authorization,
        org_group=group,
        platform=settings.platform,
    )


def _failed(name: str, reason: str, decision: UploadDecision | None = None) -> IngestResult:
    get_global_logger().warning(f"{name}: {reason}")
    return IngestResult(
        application_name=name,
        status=STATUS_FAILED,
        decision=decision.value if decision else None,
        reason=reason,
    )


def _skipped(
    name: str,
    reason: str,
    decision: UploadDecision | None = None,
    *,
    warn: bool = False,
) -> IngestResult:
    logger = get_global_logger()
    if warn:
        logger.warning(f"{name}: {reason}")
    else:
        logger.info(f"{name}: {reason}")
    return IngestResult(
        application_name=name,
        status=STATUS_SKIPPED,
        decision=decision.value if decision else None,
        reason=reason,
    )


def process_descriptor(
    descriptor: ApplicationDescriptor,
    context: UemContext,
    http: requests.Session,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestResult:
    """Resolve, transfer and create one application.

    Returns:
        The IngestResult for this descriptor.

    Raises:
        SessionError: On authentication or connectivity failure.
    """
    logger = get_global_logger()
    name = descriptor.application_name

    try:
        resolution = resolve(context, http, descriptor)
    except SessionError:
        raise
    except NetworkError as err:
        return _failed(name, f"existing application search failed: {err}")

    decision = resolution.decision
    if decision is UploadDecision.SKIP:
        return _skipped(
            name,
            f"version {resolution.existing_version!r} ({descriptor.file_extension}) "
            "already exists, skipping",
            decision,
        )
    if decision is UploadDecision.CREATE_NEW_VERSION:
        logger.verbose(
            "RESOLVE",
            f"{name}: adding version {descriptor.candidate_version!r} after "
            f"{resolution.existing_version!r} (bundle {resolution.bundle_id})",
        )

    transaction_id: str | None = None
    blob_id: int | None = None
    try:
        if descriptor.upload_via_link:
            logger.verbose("LINK", f"{name}: requesting server-side fetch")
            blob_id = upload_via_link(
                context, http, descriptor.application_url or "", descriptor.file_name
            )
        else:
            local_file = descriptor.local_file
            if not local_file.is_file():
                return _failed(name, f"local file not found: {local_file}", decision)
            transaction_id = upload_chunked(
                context, http, local_file, chunk_size=chunk_size
            )
    except LinkRejectedError as err:
        return _skipped(name, f"link upload skipped: {err}", decision, warn=True)
    except SessionError:
        raise
    except TransferError as err:
        return _failed(name, f"transfer aborted: {err}", decision)
    except OSError as err:
        return _failed(name, f"cannot read local file: {err}", decision)
    except ConfigError as err:
        return _failed(name, str(err), decision)

    payload = build_creation_payload(
        descriptor,
        context,
        transaction_id=transaction_id,
        blob_id=blob_id,
        bundle_id=resolution.bundle_id,
    )
    created = create_application(context, http, payload)
    if not created.success:
        return _failed(
            name,
            f"creation rejected (HTTP {created.status_code}): {created.message}",
            decision,
        )

    logger.info(
        f"{name}: created"
        + (f" (id {created.application_id})" if created.application_id else "")
    )
    return IngestResult(
        application_name=name,
        status=STATUS_CREATED,
        decision=decision.value,
        application_id=created.application_id,
    )


def ingest_descriptors(
    descriptors: Iterable[ApplicationDescriptor | IngestResult],
    context: UemContext,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestSummary:
    """Process descriptors strictly one after another.

    Items that are already IngestResults (descriptors that failed to load)
    are passed through so the summary keeps descriptor order.

    Raises:
        SessionError: On authentication or connectivity failure.
    """
    logger = get_global_logger()
    items = list(descriptors)
    results: list[IngestResult] = []

    with make_session(context.api_key, context.authorization) as http:
        for idx, item in enumerate(items, start=1):
            if isinstance(item, IngestResult):
                results.append(item)
                continue
            logger.step(idx, len(items), f"{item.application_name} ({item.file_name})")
            results.append(
                process_descriptor(item, context, http, chunk_size=chunk_size)
            )

    return IngestSummary(results=results)


def load_directory(descriptor_dir: Path) -> list[ApplicationDescriptor | IngestResult]:
    """Load every descriptor in a directory.

    Descriptors that cannot be loaded become failed IngestResults named
    after the file, so one bad file does not stop the run.

    Raises:
        ConfigError: If the directory (or its defaults file) is invalid.
    """
    descriptor_dir = Path(descriptor_dir)
    defaults = load_defaults(descriptor_dir)
    loaded: list[ApplicationDescriptor | IngestResult] = []
    for path in discover_descriptor_files(descriptor_dir):
        try:
            loaded.append(parse_descriptor(read_record(path, defaults), source=path))
        except (ConfigError, OSError) as err:
            loaded.append(_failed(path.name, f"invalid descriptor: {err}"))
    return loaded


def ingest_directory(
    descriptor_dir: Path,
    context: UemContext,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> IngestSummary:
    """Load and process every descriptor in a directory.

    Raises:
        ConfigError: If the directory does not exist.
        SessionError: On authentication or connectivity failure.
    """
    return ingest_descriptors(
        load_directory(descriptor_dir), context, chunk_size=chunk_size
    )
