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

"""Organization group lookup.

Applications are searched and created inside one organization group. The
group is looked up by name once per run; the server search is a substring
match, so several groups can come back and the operator picks one.

Example:
    ```python
    groups = search_groups(http, "https://cn135.awmdm.com", "Corp")
    group = select_group(groups, "Corp")
    print(group.id, group.uuid)
    ```
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

from appingest.api.session import json_object, require_success, send
from appingest.exceptions import ConfigError, SelectionCancelled

GROUP_SEARCH_PATH = "/API/system/groups/search"


@dataclass(frozen=True)
class OrganizationGroup:
    """An organization group as returned by the group search.

    Attributes:
        id: Numeric group id (used as locationgroupid / LocationGroupId).
        uuid: Group UUID.
        name: Display name.
        country: Country configured on the group (may be empty).
    """

    id: int
    uuid: str
    name: str
    country: str = ""


def unwrap_id(value: Any) -> int | None:
    """Return the integer id from either 123 or {"Value": 123}."""
    if isinstance(value, dict):
        value = value.get("Value")
    if value is None or value == "":
        return None
    return int(value)


def search_groups(
    http: requests.Session, server_url: str, name: str
) -> list[OrganizationGroup]:
    """Search organization groups by name.

    Args:
        http: Authenticated session.
        server_url: Normalized server base URL.
        name: Group name (server performs a substring match).

    Returns:
        Matching groups in server order. Empty when nothing matches.

    Raises:
        SessionError: On authentication or connectivity failure.
        NetworkError: On other non-success responses.
    """
    resp = send(
        http,
        "GET",
        f"{server_url}{GROUP_SEARCH_PATH}",
        params={"name": name},
        action="organization group search",
    )
    if resp.status_code == 204:
        return []
    require_success(resp, "organization group search")

    body = json_object(resp, "organization group search")
    groups: list[OrganizationGroup] = []
    for item in body.get("LocationGroups") or []:
        if not isinstance(item, dict):
            continue
        group_id = unwrap_id(item.get("Id"))
        if group_id is None:
            continue
        groups.append(
            OrganizationGroup(
                id=group_id,
                uuid=str(item.get("Uuid") or ""),
                name=str(item.get("Name") or ""),
                country=str(item.get("Country") or ""),
            )
        )
    return groups


def prompt_choice(groups: list[OrganizationGroup]) -> OrganizationGroup | None:
    """Ask the operator to pick a group. Returns None when cancelled."""
    print("Multiple organization groups match:")
    for idx, group in enumerate(groups, start=1):
        country = f", {group.country}" if group.country else ""
        print(f"  {idx}) {group.name} (id {group.id}{country})")
    while True:
        answer = input("Select a group number (blank or 'q' to cancel): ").strip()
        if answer in ("", "q", "Q"):
            return None
        if answer.isdigit() and 1 <= int(answer) <= len(groups):
            return groups[int(answer) - 1]
        print(f"Please enter a number between 1 and {len(groups)}.")


def select_group(
    groups: list[OrganizationGroup],
    name: str,
    chooser: Callable[[list[OrganizationGroup]], OrganizationGroup | None] | None = None,
) -> OrganizationGroup:
    """Pick the organization group to work in.

    A single result is used directly. With several results, a group whose
    name equals ``name`` exactly wins; otherwise the chooser decides.

    Raises:
        ConfigError: If no group matched.
        SelectionCancelled: If the chooser returns None.
    """
    if not groups:
        raise ConfigError(f"No organization group matches {name!r}")
    if len(groups) == 1:
        return groups[0]

    exact = [g for g in groups if g.name == name]
    if len(exact) == 1:
        return exact[0]

    choice = (chooser or prompt_choice)(groups)
    if choice is None:
        raise SelectionCancelled("Organization group selection cancelled")
    return choice
