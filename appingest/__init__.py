"""
AppIngest - bulk application upload to a UEM server

A Python CLI tool for ingesting many application packages into a
mobile-device-management (UEM) backend over its REST API.

AppIngest provides:
  - Declarative YAML/JSON application descriptors with a shared defaults layer
  - Existing-version detection (skip / create new / create new version)
  - Chunked binary upload with a server-issued transaction id
  - Server-side fetch of directly downloadable links
  - Offline descriptor validation

Quick Start
-----------
Validate descriptors:

    $ appingest validate ./apps

Upload everything in a directory:

    $ appingest upload ./apps --server-url cn135.awmdm.com --org-group Corp

Package Structure
-----------------
cli : module
    Command-line interface with argparse.
core : module
    Orchestration of resolve, transfer and create.
config : package
    Settings resolution (flags, environment, YAML, prompts).
descriptors : package
    Descriptor loading and the file extension rule.
resolver : module
    Existing-application search and upload decision.
transfer : package
    Chunked and link-based transfer engines.
creation : module
    Create-application payload and call.
api : package
    Authenticated HTTP session and organization group lookup.

Public API
----------
    from appingest.core import build_context, ingest_directory
    from appingest.config import resolve_settings
    from appingest.resolver import classify, UploadDecision
    from appingest.validation import validate_descriptors

Project Information
-------------------
Author: Roger Cibrian
License: Apache-2.0
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "AppIngest - bulk application upload to a UEM server"

# Re-export commonly used functions for convenience
from appingest.config import resolve_settings
from appingest.core import build_context, ingest_descriptors, ingest_directory
from appingest.resolver import UploadDecision, classify
from appingest.validation import validate_descriptors

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "resolve_settings",
    "build_context",
    "ingest_descriptors",
    "ingest_directory",
    "UploadDecision",
    "classify",
    "validate_descriptors",
]
