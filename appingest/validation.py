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

"""Descriptor validation module.

This module checks descriptor files without making network calls, for quick
feedback while writing descriptors and as a pre-flight check before a bulk
run.

Validation Checks:

- YAML/JSON syntax is valid and the document is a mapping
- Required fields present (ApplicationName, FileName)
- UploadViaLink is a boolean and the selected source is configured
- The defaults.yaml layer (if any) parses

Warnings (descriptor still loads):

- File extension is not one of .MSI/.EXE/.ZIP exactly (extensions compare
  case-sensitively on their last 4 characters)
- Local file missing for a chunked upload
- No version information, so the existing-version check can never skip

Example:
    Validate a directory and handle results:
        ```python
        from pathlib import Path
        from appingest.validation import validate_descriptors

        result = validate_descriptors(Path("./apps"))
        if result.status == "valid":
            print(f"{result.descriptor_count} descriptor(s) OK")
        else:
            for error in result.errors:
                print(f"Error: {error}")
        ```

"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from appingest.descriptors import (
    KNOWN_EXTENSIONS,
    descriptor_errors,
    discover_descriptor_files,
    load_defaults,
    parse_descriptor,
    read_record,
)
from appingest.exceptions import ConfigError
from appingest.results import ValidationResult

__all__ = ["validate_descriptors"]


def _descriptor_warnings(record: dict[str, Any]) -> list[str]:
    desc = parse_descriptor(record)
    warnings: list[str] = []
    if desc.file_extension not in KNOWN_EXTENSIONS:
        warnings.append(
            f"File extension {desc.file_extension!r} is not one of "
            f"{', '.join(KNOWN_EXTENSIONS)}; extensions are matched "
            "case-sensitively on the last 4 characters"
        )
    if not desc.upload_via_link and not desc.local_file.is_file():
        warnings.append(f"Local file not found: {desc.local_file}")
    if not desc.candidate_version:
        warnings.append(
            "No ActualFileVersion or structured version; an existing "
            "application with the same extension will always get a new version"
        )
    return warnings


def validate_descriptors(path: Path, verbose: bool = False) -> ValidationResult:
    """Validate one descriptor file or every descriptor in a directory.

    Does NOT:

    - Contact the UEM server
    - Check whether link sources are reachable

    Args:
        path: Descriptor file or directory.
        verbose: If True, print validation progress.

    Returns:
        ValidationResult with status "valid" or "invalid". Messages are
        prefixed with the descriptor file name.
    """
    errors: list[str] = []
    warnings: list[str] = []
    path = Path(path)

    if verbose:
        print(f"Validating descriptors: {path}")

    if not path.exists():
        return ValidationResult(
            status="invalid",
            errors=[f"Path not found: {path}"],
            warnings=[],
            descriptor_count=0,
            path=str(path),
        )

    directory = path if path.is_dir() else path.parent
    try:
        defaults = load_defaults(directory)
        files = discover_descriptor_files(path) if path.is_dir() else [path]
    except ConfigError as err:
        return ValidationResult(
            status="invalid",
            errors=[str(err)],
            warnings=[],
            descriptor_count=0,
            path=str(path),
        )

    if not files:
        errors.append(f"No descriptor files (.yaml, .yml, .json) in {path}")

    for file in files:
        try:
            record = read_record(file, defaults)
        except (ConfigError, OSError) as err:
            errors.append(f"{file.name}: {err}")
            continue

        problems = descriptor_errors(record)
        if problems:
            errors.extend(f"{file.name}: {p}" for p in problems)
            continue

        warnings.extend(f"{file.name}: {w}" for w in _descriptor_warnings(record))
        if verbose:
            print(f"  [OK] {file.name}: {record['ApplicationName']}")

    status = "valid" if not errors else "invalid"
    if verbose:
        if status == "valid":
            print("  [OK] All descriptors are valid!")
        else:
            print(f"  [ERROR] {len(errors)} error(s)")

    return ValidationResult(
        status=status,
        errors=errors,
        warnings=warnings,
        descriptor_count=len(files),
        path=str(path),
    )
