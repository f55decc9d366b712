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

"""Public API return types for AppIngest.

All dataclasses are frozen to prevent accidental mutation of return values.

Note:
    Only public API return types belong in this module. Domain types (like
    UploadDecision or ApplicationDescriptor) stay next to their logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field

STATUS_CREATED = "created"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"


@dataclass(frozen=True)
class CreationResult:
    """Outcome of a create-application call.

    Attributes:
        success: True when the server accepted the application.
        status_code: HTTP status returned by the server.
        message: Server message, verbatim (empty on success when absent).
        application_id: Server id of the new application, when returned.
    """

    success: bool
    status_code: int
    message: str
    application_id: int | None = None


@dataclass(frozen=True)
class IngestResult:
    """Outcome for one descriptor.

    Attributes:
        application_name: Name from the descriptor (or file name when the
            descriptor could not be loaded).
        status: "created", "skipped" or "failed".
        decision: Upload decision value ("skip", "create_new",
            "create_new_version"), or None if resolution never ran.
        reason: Human-readable cause for skipped or failed descriptors.
        application_id: Server id of a created application.
    """

    application_name: str
    status: str
    decision: str | None = None
    reason: str = ""
    application_id: int | None = None


@dataclass(frozen=True)
class IngestSummary:
    """Results for a whole run, in descriptor order."""

    results: list[IngestResult] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_CREATED)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_FAILED)


@dataclass(frozen=True)
class ValidationResult:
    """Result from validating a descriptor directory.

    Attributes:
        status: "valid" or "invalid".
        errors: Error messages (empty if valid).
        warnings: Warning messages.
        descriptor_count: Number of descriptor files found.
        path: String path of the validated directory or file.
    """

    status: str
    errors: list[str]
    warnings: list[str]
    descriptor_count: int
    path: str
