# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
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
"""Manages the application's configuration using Pydantic."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DiagramFilter

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


class Settings(BaseSettings):
    """Manages configuration for the application.

    Reads settings from environment variables with the prefix 'D365_' and
    from a local '.env' file. Keyword arguments (e.g. values loaded from a
    YAML config file) take precedence over both.
    """

    model_config = SettingsConfigDict(
        env_prefix="D365_", env_file=".env", extra="ignore",
    )

    # Azure AD application (client credentials grant)
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: SecretStr | None = None
    authority_host: str = "https://login.microsoftonline.com"

    # Dataverse organization, e.g. https://contoso.crm.dynamics.com
    org_url: str | None = None
    api_version: str = "v9.2"
    http_timeout: float = 30.0

    output_dir: Path = Path("outputs")
    diagrams_dir: Path = Path("diagrams")

    entities: list[str] = Field(default_factory=lambda: ["account", "contact"])
    business_rules_by_category: bool = True
    diagram_filter: DiagramFilter = Field(default_factory=DiagramFilter)

    @computed_field
    @property
    def api_base_url(self) -> str:
        """Base URL of the Dataverse Web API for the configured organization."""
        if not self.org_url:
            return ""
        return f"{self.org_url.rstrip('/')}/api/data/{self.api_version}"

    @computed_field
    @property
    def token_url(self) -> str:
        """OAuth2 token endpoint of the configured tenant."""
        return f"{self.authority_host.rstrip('/')}/{self.tenant_id}/oauth2/token"

    def require_credentials(self) -> None:
        """Raise ConfigurationError if any value needed to authenticate is missing."""
        missing = [
            f"D365_{name.upper()}"
            for name in ("tenant_id", "client_id", "client_secret", "org_url")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )


def load_config(config_file: str | Path | None) -> dict[str, Any]:
    """Loads configuration overrides from a YAML file."""
    if not config_file:
        return {}
    try:
        with open(config_file, "r") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file not found: %s", config_file)
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Config file {config_file} must contain a mapping, got {type(config).__name__}"
        )
    return config
