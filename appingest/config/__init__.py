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

"""Settings resolution for AppIngest.

Connection settings are resolved once per run from, in order: explicit
parameters, UEM_* environment variables (and .env), an optional YAML
settings file, and interactive prompts.

Public API:

- resolve_settings: Build the immutable Settings for a run
- Settings: Frozen dataclass holding the resolved values

Example:
    Basic usage:

        from appingest.config import resolve_settings

        settings = resolve_settings(server_url="cn135.awmdm.com")
        print(settings.server_url)  # "https://cn135.awmdm.com"

"""

from .loader import (
    DEFAULT_CHUNK_SIZE_MB,
    DEFAULT_PLATFORM,
    Settings,
    deep_merge_dicts,
    load_yaml_file,
    normalize_server_url,
    resolve_settings,
)

__all__ = [
    "DEFAULT_CHUNK_SIZE_MB",
    "DEFAULT_PLATFORM",
    "Settings",
    "deep_merge_dicts",
    "load_yaml_file",
    "normalize_server_url",
    "resolve_settings",
]
