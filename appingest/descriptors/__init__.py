"""Application descriptor loading for AppIngest.

Public API:

- ApplicationDescriptor: One application to ingest
- load_descriptor: Load one YAML/JSON descriptor file
- discover_descriptor_files: List descriptor files in a directory
- file_extension: The last-4-characters extension rule
"""

from .loader import (
    DEFAULTS_FILE_NAME,
    INSTALLER_EXTENSION,
    KNOWN_EXTENSIONS,
    STRUCTURED_VERSION_KEYS,
    TRANSFER_ONLY_KEYS,
    ApplicationDescriptor,
    descriptor_errors,
    discover_descriptor_files,
    file_extension,
    iter_app_criteria,
    load_defaults,
    load_descriptor,
    parse_descriptor,
    read_record,
)

__all__ = [
    "DEFAULTS_FILE_NAME",
    "INSTALLER_EXTENSION",
    "KNOWN_EXTENSIONS",
    "STRUCTURED_VERSION_KEYS",
    "TRANSFER_ONLY_KEYS",
    "ApplicationDescriptor",
    "descriptor_errors",
    "discover_descriptor_files",
    "file_extension",
    "iter_app_criteria",
    "load_defaults",
    "load_descriptor",
    "parse_descriptor",
    "read_record",
]
