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

"""Command-line interface for AppIngest.

Commands:

    validate: Check descriptor files offline
    upload: Ingest every descriptor in a directory into the UEM server

Example:
    Validate descriptors:
        ```bash
        $ appingest validate ./apps
        ```

    Upload, prompting for anything not in the environment:
        ```bash
        $ appingest upload ./apps --server-url cn135.awmdm.com --org-group Corp
        ```

    Enable verbose output:
        ```bash
        $ appingest upload ./apps --verbose
        ```

Exit Codes:

- 0: Success (no descriptor failed)
- 1: Error (invalid settings, authentication failure, cancelled group
  selection, or at least one failed descriptor)

Note:
    Connection settings resolve from flags, then UEM_* environment variables
    (and .env), then --config, then interactive prompts. The password is
    only ever read from UEM_PASSWORD or a no-echo prompt.

"""

from __future__ import annotations

import argparse
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
import sys

from appingest import __version__
from appingest.config import resolve_settings
from appingest.core import build_context, ingest_directory
from appingest.exceptions import AppIngestError, SelectionCancelled, SessionError
from appingest.logging import get_logger, set_global_logger
from appingest.results import IngestSummary
from appingest.validation import validate_descriptors


def _installed_version() -> str:
    try:
        return version("appingest")
    except PackageNotFoundError:
        return __version__


def cmd_validate(args: argparse.Namespace) -> int:
    """Handler for 'appingest validate' command.

    Args:
        args: Parsed command-line arguments containing the descriptor path
            and verbose flag.

    Returns:
        Exit code (0 for valid descriptors, 1 for invalid).
    """
    set_global_logger(get_logger(verbose=args.verbose, debug=False))

    path = Path(args.path).resolve()
    print(f"Validating descriptors: {path}")
    print()

    result = validate_descriptors(path, verbose=args.verbose)

    print("=" * 70)
    print("VALIDATION RESULTS")
    print("=" * 70)
    print(f"Path:         {result.path}")
    print(f"Status:       {result.status.upper()}")
    print(f"Descriptors:  {result.descriptor_count}")
    print()

    if result.warnings:
        print(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            print(f"  [WARNING] {warning}")
        print()

    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  [X] {error}")
        print()

    print("=" * 70)

    if result.status == "valid":
        print()
        print("[SUCCESS] Descriptors are valid!")
        return 0
    print()
    print(f"[FAILED] Validation failed with {len(result.errors)} error(s).")
    return 1


def _print_summary(summary: IngestSummary) -> None:
    print("=" * 70)
    print("UPLOAD RESULTS")
    print("=" * 70)
    for result in summary.results:
        line = f"{result.status.upper():<8} {result.application_name}"
        if result.reason:
            line += f" - {result.reason}"
        print(line)
    print("-" * 70)
    print(
        f"Created: {summary.created}   Skipped: {summary.skipped}   "
        f"Failed: {summary.failed}"
    )
    print("=" * 70)


def _fail(err: Exception, args: argparse.Namespace, hint: str | None = None) -> int:
    print(f"Error: {err}")
    if hint:
        print(hint)
    if args.verbose or args.debug:
        import traceback

        traceback.print_exc()
    return 1


def cmd_upload(args: argparse.Namespace) -> int:
    """Handler for 'appingest upload' command.

    Resolves settings, authenticates via the organization group search and
    processes every descriptor in the directory.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 when nothing failed, 1 otherwise).
    """
    set_global_logger(get_logger(verbose=args.verbose, debug=args.debug))

    descriptor_dir = Path(args.descriptors).resolve()
    if not descriptor_dir.is_dir():
        print(f"Error: Descriptor directory not found: {descriptor_dir}")
        return 1

    try:
        settings = resolve_settings(
            server_url=args.server_url,
            username=args.username,
            api_key=args.api_key,
            org_group=args.org_group,
            platform=args.platform,
            chunk_size_mb=args.chunk_size_mb,
            config_file=Path(args.config) if args.config else None,
        )
        print(f"Server: {settings.server_url}")
        print(f"Descriptors: {descriptor_dir}")
        print()

        context = build_context(settings)
        summary = ingest_directory(
            descriptor_dir, context, chunk_size=settings.chunk_size
        )
    except SelectionCancelled as err:
        print(f"Aborted: {err}")
        return 1
    except SessionError as err:
        return _fail(
            err, args, "Run aborted: check the server URL, credentials and API key."
        )
    except AppIngestError as err:
        return _fail(err, args)

    print()
    _print_summary(summary)
    if summary.failed:
        print()
        print(f"[FAILED] {summary.failed} descriptor(s) failed.")
        return 1
    print()
    print("[SUCCESS] Upload run complete!")
    return 0


def main() -> None:
    """Main entry point for the appingest CLI.

    Registered as the 'appingest' console script in pyproject.toml.
    """
    parser = argparse.ArgumentParser(
        prog="appingest",
        description="AppIngest - bulk application upload to a UEM server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"appingest {_installed_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'validate' command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate descriptor files (no network calls)",
        description="Check descriptor YAML/JSON for errors without contacting the server.",
    )
    parser_validate.add_argument(
        "path",
        help="Descriptor file or directory",
    )
    parser_validate.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show validation progress and details",
    )
    parser_validate.set_defaults(func=cmd_validate)

    # 'upload' command
    parser_upload = subparsers.add_parser(
        "upload",
        help="Upload every descriptor in a directory",
        description="Resolve, transfer and create each application described in a directory.",
    )
    parser_upload.add_argument(
        "descriptors",
        help="Directory containing descriptor files",
    )
    parser_upload.add_argument("--server-url", help="UEM server URL or host name")
    parser_upload.add_argument("--username", help="UEM console user name")
    parser_upload.add_argument("--api-key", help="Tenant REST API key")
    parser_upload.add_argument("--org-group", help="Organization group name")
    parser_upload.add_argument(
        "--platform",
        default=None,
        help="Platform filter for application search (default: WinRT)",
    )
    parser_upload.add_argument(
        "--chunk-size-mb",
        type=int,
        default=None,
        help="Chunk size in MiB for chunked uploads (default: 5)",
    )
    parser_upload.add_argument(
        "--config",
        default=None,
        help="YAML settings file (server_url, username, api_key, org_group, ...)",
    )
    parser_upload.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_upload.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed debugging output (implies --verbose)",
    )
    parser_upload.set_defaults(func=cmd_upload)

    args = parser.parse_args()
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
