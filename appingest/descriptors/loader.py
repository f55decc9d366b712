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

"""Application descriptor loading.

A descriptor is one YAML or JSON mapping per application. Its keys are the
field names of the UEM create-application API so that anything the loader
does not recognize is forwarded verbatim as creation metadata.

Recognized Fields
-----------------
ApplicationName (required)
    Name searched for on the server and used for the new application.
FileName (required)
    Binary file name. Its last 4 characters are the file extension.
FilePath (transfer-only)
    Local directory containing FileName.
ApplicationUrl (transfer-only)
    Publicly reachable URL of the binary.
UploadViaLink
    True selects the link transfer (ApplicationUrl), false the chunked
    transfer of FilePath/FileName. Default false.
ActualFileVersion
    Flat version string used for the existing-version check.
DeploymentOptions.WhenToCallInstallComplete.CriteriaList[].AppCriteria
    MajorVersion / MinorVersion / BuildNumber / RevisionNumber: structured
    version detection for installer (MSI) packages.

Transfer-only fields are stripped from the metadata before it is sent.

Defaults Layer
--------------
A ``defaults.yaml`` next to the descriptors is deep-merged under every
descriptor (dicts merge, lists and scalars replace), so shared values like
DeviceType or PushMode are written once.

Example:
    ```python
    from pathlib import Path
    from appingest.descriptors import load_descriptor

    desc = load_descriptor(Path("apps/7zip.yaml"))
    print(desc.application_name, desc.file_extension, desc.candidate_version)
    ```
"""

from __future__ import annotations

from collections.abc import Iterator
import copy
from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

import yaml

from appingest.config.loader import deep_merge_dicts, load_yaml_file
from appingest.exceptions import ConfigError

KEY_APPLICATION_NAME = "ApplicationName"
KEY_FILE_NAME = "FileName"
KEY_FILE_PATH = "FilePath"
KEY_APPLICATION_URL = "ApplicationUrl"
KEY_UPLOAD_VIA_LINK = "UploadViaLink"
KEY_ACTUAL_FILE_VERSION = "ActualFileVersion"

TRANSFER_ONLY_KEYS = (KEY_FILE_PATH, KEY_APPLICATION_URL)

# Structured version fields, in major.minor.build.revision order.
STRUCTURED_VERSION_KEYS = ("MajorVersion", "MinorVersion", "BuildNumber", "RevisionNumber")

DESCRIPTOR_SUFFIXES = (".yaml", ".yml", ".json")
DEFAULTS_FILE_NAME = "defaults.yaml"

# Server-side matching compares the last 4 characters of the file name,
# case-sensitively. Keep this a plain slice, not a path-suffix parser.
EXTENSION_LENGTH = 4
KNOWN_EXTENSIONS = (".MSI", ".EXE", ".ZIP")
INSTALLER_EXTENSION = ".MSI"

_YAML_FLOAT_TAG = "tag:yaml.org,2002:float"


class DescriptorYamlLoader(yaml.SafeLoader):
    """SafeLoader that leaves dotted numbers such as 1.10 as strings."""


DescriptorYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _YAML_FLOAT_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def file_extension(file_name: str) -> str:
    """Return the last 4 characters of a file name.

    ``"setup.MSI"`` -> ``".MSI"``, ``"setup.msi"`` -> ``".msi"``,
    ``"pkg.msix"`` -> ``"msix"``. No case folding, no real suffix parsing.
    """
    return file_name[-EXTENSION_LENGTH:]


def iter_app_criteria(record: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Yield every AppCriteria mapping in a record's detection criteria.

    The yielded dicts are the record's own objects, so callers working on a
    copy can edit them in place.
    """
    options = record.get("DeploymentOptions")
    if not isinstance(options, dict):
        return
    complete = options.get("WhenToCallInstallComplete")
    if not isinstance(complete, dict):
        return
    criteria_list = complete.get("CriteriaList")
    if not isinstance(criteria_list, list):
        return
    for criteria in criteria_list:
        if isinstance(criteria, dict) and isinstance(criteria.get("AppCriteria"), dict):
            yield criteria["AppCriteria"]


def _structured_version(record: dict[str, Any]) -> str:
    """Join the first criteria entry's structured version numbers."""
    for app_criteria in iter_app_criteria(record):
        if not any(k in app_criteria for k in STRUCTURED_VERSION_KEYS):
            continue
        parts: list[str] = []
        for key in STRUCTURED_VERSION_KEYS:
            value = app_criteria.get(key)
            if value is None or str(value).strip() == "":
                break
            parts.append(str(value).strip())
        return ".".join(parts)
    return ""


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def descriptor_errors(record: Any) -> list[str]:
    """Check a raw descriptor record without touching disk or network.

    Returns:
        Human-readable problems. Empty if the record can be loaded.
    """
    if not isinstance(record, dict):
        return ["Descriptor must be a mapping"]

    errors: list[str] = []
    for key in (KEY_APPLICATION_NAME, KEY_FILE_NAME):
        value = record.get(key)
        if value is None:
            errors.append(f"Missing required field: {key}")
        elif not isinstance(value, str) or not value.strip():
            errors.append(f"Field '{key}' must be a non-empty string")

    via_link = False
    if KEY_UPLOAD_VIA_LINK in record:
        parsed = _as_bool(record[KEY_UPLOAD_VIA_LINK])
        if parsed is None:
            errors.append(f"Field '{KEY_UPLOAD_VIA_LINK}' must be true or false")
        else:
            via_link = parsed

    if via_link:
        if not isinstance(record.get(KEY_APPLICATION_URL), str) or not record[
            KEY_APPLICATION_URL
        ].strip():
            errors.append(f"{KEY_UPLOAD_VIA_LINK} is true but {KEY_APPLICATION_URL} is missing")
    else:
        if not isinstance(record.get(KEY_FILE_PATH), str) or not record[KEY_FILE_PATH].strip():
            errors.append(f"{KEY_UPLOAD_VIA_LINK} is false but {KEY_FILE_PATH} is missing")

    version = record.get(KEY_ACTUAL_FILE_VERSION)
    if isinstance(version, float):
        errors.append(
            f"Field '{KEY_ACTUAL_FILE_VERSION}' must be a string; quote the version"
        )
    elif version is not None and not isinstance(version, (str, int)):
        errors.append(f"Field '{KEY_ACTUAL_FILE_VERSION}' must be a string")

    return errors


@dataclass(frozen=True)
class ApplicationDescriptor:
    """One application to ingest.

    Attributes:
        application_name: Name searched for and created on the server.
        file_name: Binary file name.
        file_path: Local directory of the binary (chunked transfer).
        application_url: Remote location of the binary (link transfer).
        upload_via_link: Selects the authoritative binary source.
        actual_file_version: Flat version string, if given.
        metadata: The record minus transfer-only fields, forwarded verbatim
            to the create-application call.
        source: Descriptor file the record was read from, if any.
    """

    application_name: str
    file_name: str
    file_path: str | None = None
    application_url: str | None = None
    upload_via_link: bool = False
    actual_file_version: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    source: Path | None = None

    @property
    def file_extension(self) -> str:
        return file_extension(self.file_name)

    @property
    def is_installer(self) -> bool:
        """True for installer packages whose version the server reads itself."""
        return self.file_extension == INSTALLER_EXTENSION

    @property
    def local_file(self) -> Path:
        if not self.file_path:
            raise ConfigError(f"{self.application_name}: no {KEY_FILE_PATH} configured")
        return Path(self.file_path) / self.file_name

    @property
    def candidate_version(self) -> str:
        """Version compared against existing server records.

        ActualFileVersion wins; otherwise the structured detection numbers
        joined as major.minor.build.revision; otherwise "".
        """
        if self.actual_file_version:
            return self.actual_file_version
        return _structured_version(self.metadata)


def parse_descriptor(record: Any, source: Path | None = None) -> ApplicationDescriptor:
    """Build an ApplicationDescriptor from a raw record.

    Raises:
        ConfigError: If the record fails descriptor_errors().
    """
    errors = descriptor_errors(record)
    if errors:
        where = f"{source}: " if source else ""
        raise ConfigError(where + "; ".join(errors))

    metadata = {k: copy.deepcopy(v) for k, v in record.items() if k not in TRANSFER_ONLY_KEYS}
    version = record.get(KEY_ACTUAL_FILE_VERSION)
    via_link = _as_bool(record.get(KEY_UPLOAD_VIA_LINK, False)) or False
    metadata[KEY_UPLOAD_VIA_LINK] = via_link

    return ApplicationDescriptor(
        application_name=record[KEY_APPLICATION_NAME].strip(),
        file_name=record[KEY_FILE_NAME].strip(),
        file_path=record.get(KEY_FILE_PATH),
        application_url=record.get(KEY_APPLICATION_URL),
        upload_via_link=via_link,
        actual_file_version=str(version).strip() if version not in (None, "") else None,
        metadata=metadata,
        source=source,
    )


def load_defaults(directory: Path) -> dict[str, Any]:
    """Load ``defaults.yaml`` from a descriptor directory, or {} if absent."""
    path = directory / DEFAULTS_FILE_NAME
    if not path.exists():
        return {}
    data = load_yaml_file(path, DescriptorYamlLoader)
    if not isinstance(data, dict):
        raise ConfigError(f"defaults file must be a mapping: {path}")
    return data


def _load_json_file(p: Path) -> Any:
    if not p.exists():
        raise FileNotFoundError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8-sig") as f:
            return json.load(f, parse_float=str)
    except json.JSONDecodeError as err:
        raise ConfigError(f"invalid JSON in {p}: {err}") from err


def read_record(path: Path, defaults: dict[str, Any] | None = None) -> Any:
    """Read a descriptor file and merge it over the defaults layer."""
    if path.suffix.lower() == ".json":
        record = _load_json_file(path)
    else:
        record = load_yaml_file(path, DescriptorYamlLoader)
    if defaults and isinstance(record, dict):
        record = deep_merge_dicts(defaults, record)
    return record


def load_descriptor(
    path: Path, defaults: dict[str, Any] | None = None
) -> ApplicationDescriptor:
    """Load one descriptor file.

    Args:
        path: YAML or JSON descriptor file.
        defaults: Optional defaults merged under the record. When None, the
            ``defaults.yaml`` next to the file is used if present.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: On parse errors or invalid content.
    """
    path = Path(path)
    if defaults is None:
        defaults = load_defaults(path.parent)
    return parse_descriptor(read_record(path, defaults), source=path)


def discover_descriptor_files(directory: Path) -> list[Path]:
    """List descriptor files in a directory, sorted by name.

    The defaults file and hidden files are excluded.

    Raises:
        ConfigError: If the directory does not exist.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise ConfigError(f"descriptor directory not found: {directory}")
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file()
        and p.suffix.lower() in DESCRIPTOR_SUFFIXES
        and p.name != DEFAULTS_FILE_NAME
        and not p.name.startswith(".")
    )
