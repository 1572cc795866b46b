# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
"""Settings with environment variable and YAML file support."""
import os
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from argus.core.constants import (
    DEFAULT_BREVITY_THRESHOLD,
    DEFAULT_COMPACTION_KEEP_RECENT,
    DEFAULT_COMPACTION_MIN_MESSAGES,
    DEFAULT_COMPACTION_TOKEN_THRESHOLD,
    DEFAULT_MAX_CONTEXTS,
    DEFAULT_MAX_LOOPS,
    DEFAULT_MAX_MESSAGES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MAX_TOOL_CALLS,
    DEFAULT_TEMPERATURE,
)
from argus.core.exceptions import ConfigurationError
from argus.orchestration.posting import DEFAULT_GITHUB_API_URL


DEFAULT_SETTINGS_FILE = "settings.argus.yaml"


class ArgusSettings(BaseSettings):
    """Runtime settings.

    All settings can be overridden via environment variables with ARGUS_ prefix.
    Example: ARGUS_MAX_LOOPS=10 overrides the loop ceiling.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARGUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # LLM
    model: str = Field(
        default="anthropic/claude-sonnet-4",
        description="OpenRouter model identifier",
    )
    api_key_env: str = Field(
        default="OPENROUTER_API_KEY",
        description="Environment variable holding the OpenRouter API key",
    )
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    llm_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Connection-level timeout for each chat call",
    )

    # Review loop
    max_loops: int = Field(default=DEFAULT_MAX_LOOPS, ge=1, description="Continuation turn ceiling")
    brevity_threshold: int = Field(
        default=DEFAULT_BREVITY_THRESHOLD,
        ge=1,
        description="Characters of prose that trigger a brevity turn",
    )
    compaction_token_threshold: int = Field(
        default=DEFAULT_COMPACTION_TOKEN_THRESHOLD,
        ge=1,
        description="Estimated history tokens that trigger compaction",
    )
    compaction_keep_recent: int = Field(default=DEFAULT_COMPACTION_KEEP_RECENT, ge=1)
    compaction_min_messages: int = Field(default=DEFAULT_COMPACTION_MIN_MESSAGES, ge=0)

    # Context store
    max_contexts: int = Field(default=DEFAULT_MAX_CONTEXTS, ge=1)
    max_messages: int = Field(default=DEFAULT_MAX_MESSAGES, ge=1)
    max_tool_calls: int = Field(default=DEFAULT_MAX_TOOL_CALLS, ge=1)

    # Finding posting
    github_api_url: str = Field(default=DEFAULT_GITHUB_API_URL, description="GitHub REST API base URL")


def load_settings(config_path: Path | None = None) -> ArgusSettings:
    """Load settings, overlaying a YAML file on the environment.

    Resolution order for the file:
    1. Explicit config_path parameter (if provided)
    2. ARGUS_SETTINGS environment variable (if set)
    3. Default: 'settings.argus.yaml' in the current directory, if present

    Values from the file take precedence over environment variables.

    Args:
        config_path: Optional explicit path to the configuration file.

    Returns:
        ArgusSettings populated from the environment and the file.

    Raises:
        ConfigurationError: If an explicitly named file is missing or does
            not hold a mapping.
        yaml.YAMLError: If the YAML file is malformed.
        pydantic.ValidationError: If the configuration fails validation.
    """
    explicit = config_path is not None
    if config_path is None:
        env_path = os.environ.get("ARGUS_SETTINGS")
        explicit = env_path is not None
        config_path = Path(env_path) if env_path else Path(DEFAULT_SETTINGS_FILE)

    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Configuration file not found at {config_path}")
        return ArgusSettings()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")

    return ArgusSettings(**data)
