# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
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

"""Next-edit engine settings.

Settings come from three places, highest priority first:
1. Values passed explicitly (including those loaded from a YAML file)
2. Environment variables prefixed with VICTOR_NEXTEDIT_
3. Defaults below

Example YAML:
    ```yaml
    prev_edit_capacity: 5
    debounce_initial_ms: 300
    snippet_order: [recently_viewed, static, recently_edited]
    static_snippets:
      - file_path: docs/conventions.md
        content: "Use snake_case everywhere."
    ```
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from victor_nextedit.protocol import SnippetSource

logger = logging.getLogger(__name__)


class StaticSnippetConfig(BaseModel):
    """A snippet that is always offered to the model."""

    file_path: str = Field(description="Path the snippet is attributed to")
    content: str = Field(description="Snippet text")


class NextEditSettings(BaseSettings):
    """Tunable knobs of the completion engine."""

    model_config = SettingsConfigDict(
        env_prefix="VICTOR_NEXTEDIT_",
        extra="ignore",
    )

    # History
    prev_edit_capacity: int = Field(default=5, ge=1)
    document_history_limit: Optional[int] = Field(default=None, ge=1)

    # Debounce (milliseconds)
    debounce_initial_ms: float = 300
    debounce_min_ms: float = 150
    debounce_max_ms: float = 1000
    latency_sample_size: int = Field(default=10, ge=1)

    # Requests
    max_in_flight_seconds: float = Field(default=10.0, gt=0)
    fim_max_tokens: int = 256
    temperature: float = 0.0
    stream_chat_responses: bool = True

    # Editable region
    use_full_file_diff: bool = False
    editable_region_token_budget: int = Field(default=512, ge=1)

    # Context
    snippet_token_budget: int = Field(default=2048, ge=0)
    snippet_order: list[SnippetSource] = Field(
        default_factory=lambda: [
            SnippetSource.RECENTLY_VIEWED,
            SnippetSource.STATIC,
            SnippetSource.RECENTLY_EDITED,
        ]
    )
    static_snippets: list[StaticSnippetConfig] = Field(default_factory=list)
    extra_sensitive_patterns: list[str] = Field(default_factory=list)
    extra_non_code_schemes: list[str] = Field(default_factory=list)
    recently_visited_max_files: int = Field(default=10, ge=1)
    recently_visited_context_lines: int = Field(default=5, ge=0)
    recently_edited_max_ranges: int = Field(default=8, ge=1)
    recently_edited_max_age_seconds: float = Field(default=120.0, gt=0)

    # Suggestions
    suggestion_history_size: int = Field(default=20, ge=1)
    enable_contextual_skip: bool = True

    # Fail loudly on broken bookkeeping (development); degrade otherwise
    strict_invariants: bool = __debug__

    @field_validator("snippet_order")
    @classmethod
    def _no_duplicate_sources(cls, value: list[SnippetSource]) -> list[SnippetSource]:
        if len(set(value)) != len(value):
            raise ValueError("snippet_order must not repeat a source")
        return value

    @model_validator(mode="after")
    def _debounce_bounds(self) -> "NextEditSettings":
        if self.debounce_min_ms > self.debounce_max_ms:
            raise ValueError("debounce_min_ms must not exceed debounce_max_ms")
        return self


def load_settings(path: Optional[Path] = None, **overrides: Any) -> NextEditSettings:
    """Load settings from an optional YAML file.

    Args:
        path: YAML file; ignored if it does not exist
        **overrides: Values that win over the file and the environment

    Returns:
        Validated settings
    """
    data: dict[str, Any] = {}
    if path is not None and path.exists():
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Settings file {path} must contain a mapping")
        data.update(loaded)
        logger.debug(f"Loaded next-edit settings from {path}")
    data.update(overrides)
    return NextEditSettings(**data)


# Global settings singleton
_settings: Optional[NextEditSettings] = None


def get_settings() -> NextEditSettings:
    """Get the process-wide settings (environment + defaults)."""
    global _settings
    if _settings is None:
        _settings = NextEditSettings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings. Useful for testing."""
    global _settings
    _settings = None
