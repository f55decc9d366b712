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

"""Logging interface for AppIngest.

Library modules write progress through a small logger protocol instead of
calling print() directly, so the CLI decides what reaches the console.

Output levels:

- Step: Always printed (per-descriptor progress)
- Info: Always printed (skipped descriptors, outcomes)
- Warning: Always printed (failed descriptors, rejected links)
- Verbose: Only printed when verbose mode is enabled
- Debug: Only printed when debug mode is enabled (implies verbose)

Example:
    Configure the global logger:
        ```python
        from appingest.logging import get_logger, set_global_logger

        set_global_logger(get_logger(verbose=True))
        ```

    Use in library code:
        ```python
        from appingest.logging import get_global_logger

        logger = get_global_logger()
        logger.step(1, 3, "7-Zip: resolving existing versions...")
        logger.verbose("CHUNK", "Uploaded chunk 2 (5242880 bytes)")
        logger.warning("Link source is not a direct download, skipping")
        ```

Note:
    The default global logger is silent so library functions stay quiet when
    used programmatically. The CLI installs a printing logger.
"""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class Logger(Protocol):
    """Interface every AppIngest logger provides."""

    def step(self, step: int, total: int, message: str) -> None:
        """Announce descriptor ``step`` of ``total`` (1-based)."""
        ...

    def info(self, message: str) -> None:
        """Print an outcome message."""
        ...

    def warning(self, message: str) -> None:
        """Print a warning about a failed or rejected item."""
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Progress detail, tagged with ``prefix`` (e.g., "RESOLVE", "CHUNK")."""
        ...

    def debug(self, prefix: str, message: str) -> None:
        """Request-level detail, tagged with ``prefix`` (e.g., "HTTP")."""
        ...


class DefaultLogger:
    """Logger that writes tagged lines to a stream (stdout by default).

    Step, info and warning lines are always written. Verbose lines need
    ``verbose`` (or ``debug``); debug lines need ``debug``.
    """

    def __init__(
        self, verbose: bool = False, debug: bool = False, stream: TextIO | None = None
    ) -> None:
        self.show_verbose = verbose or debug
        self.show_debug = debug
        self._stream = stream

    def _emit(self, line: str) -> None:
        print(line, file=self._stream or sys.stdout)

    def step(self, step: int, total: int, message: str) -> None:
        self._emit(f"[{step}/{total}] {message}")

    def info(self, message: str) -> None:
        self._emit(f"[INFO] {message}")

    def warning(self, message: str) -> None:
        self._emit(f"[WARNING] {message}")

    def verbose(self, prefix: str, message: str) -> None:
        if self.show_verbose:
            self._emit(f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self.show_debug:
            self._emit(f"[{prefix}] {message}")


class SilentLogger(DefaultLogger):
    """Logger that drops every line."""

    def __init__(self) -> None:
        super().__init__()

    def _emit(self, line: str) -> None:
        return None


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Get a console logger; ``debug`` implies ``verbose``."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    """Return the logger library code writes to (silent until the CLI sets one)."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Install the logger used by every library function.

    The CLI calls this once per command, tests reset it between cases.
    """
    global _global_logger
    _global_logger = logger
