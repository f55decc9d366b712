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

"""Version ordering for AppIngest.

Server-side application versions are mostly dotted numbers ("23.1.0.0"), but
vendors sneak in prefixes and suffixes ("v2.4", "1.0-beta"). This module
builds sortable keys that order those strings the way a packager expects.

Ordering rules:

- Numeric components compare numerically and are zero-padded, so
  "1.2" == "1.2.0" and "1.10" > "1.9".
- A leading "v" is ignored.
- A prerelease suffix (alpha, beta, rc, ...) sorts before the final release.
- Strings without any leading number sort below every numeric version and
  compare lexicographically among themselves.

Example:
    >>> from appingest.versioning import compare_versions
    >>> compare_versions("1.10.0", "1.9.9")
    1
    >>> compare_versions("2.0-rc1", "2.0")
    -1
"""

from __future__ import annotations

import re

__all__ = ["version_key", "compare_versions"]

# Known prerelease tag ordering (lower = older)
_PRE_TAG_RANK: dict[str, int] = {
    "dev": 0,
    "alpha": 1,
    "a": 1,
    "preview": 1,
    "pre": 1,
    "beta": 2,
    "b": 2,
    "rc": 3,
}
_UNKNOWN_PRE_RANK = 2
_FINAL_RANK = 4

_NUM_SEP = re.compile(r"[._-]")
_LEADING_DIGITS = re.compile(r"(\d+)")
_PRE_TAG = re.compile(r"(?i)([a-z]+)[._-]?(\d*)")

# Slot count numeric parts are padded to before comparison.
_PAD_TO = 6


def _release_and_suffix(text: str) -> tuple[tuple[int, ...], str]:
    """Split a version string into its numeric core and the remaining suffix."""
    s = text.strip().lower()
    if s.startswith("v"):
        s = s[1:]

    nums: list[int] = []
    consumed = 0
    for part in _NUM_SEP.split(s):
        if not part:
            consumed += 1
            continue
        if part.isdigit():
            nums.append(int(part))
            consumed += len(part) + 1
            continue
        m = _LEADING_DIGITS.match(part)
        if m:
            nums.append(int(m.group(1)))
            consumed += len(m.group(1))
        break
    return tuple(nums), s[consumed:]


def version_key(text: str) -> tuple:
    """Compute a sortable key for a version string.

    Args:
        text: Version string as returned by the server or a descriptor.

    Returns:
        A tuple that sorts ascending from oldest to newest. Numeric versions
        always sort above non-numeric strings.
    """
    release, suffix = _release_and_suffix(text or "")
    if not release:
        return (0, (), 0, 0, text or "")

    padded = release + (0,) * max(0, _PAD_TO - len(release))
    rank = _FINAL_RANK
    pre_num = 0
    m = _PRE_TAG.search(suffix)
    if m:
        rank = _PRE_TAG_RANK.get(m.group(1).lower(), _UNKNOWN_PRE_RANK)
        pre_num = int(m.group(2)) if m.group(2) else 0
    return (1, padded, rank, pre_num, "")


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings.

    Returns:
        -1 if a is older than b, 0 if they order equal, 1 if a is newer.
    """
    ka = version_key(a)
    kb = version_key(b)
    return (ka > kb) - (ka < kb)
