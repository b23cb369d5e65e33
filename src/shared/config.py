"""Configuration management for the gateway.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached for performance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Optional

import yaml
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """A required setting (usually a provider credential) is missing."""
    pass


class LLMSettings(BaseSettings):
    """LLM provider configuration."""
    provider: str = Field(default="openai", description="LLM provider: openai, azure_openai, mock")
    model: str = Field(default="gpt-4", description="Model name")
    api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("LLM_API_KEY", "OPENAI_API_KEY"),
    )
    api_base: Optional[str] = Field(default=None, description="API base URL")
    api_version: Optional[str] = Field(default="2024-02-15-preview", description="API version")
    deployment_name: Optional[str] = Field(default=None, description="Azure deployment name")
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=500, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


class GatewaySettings(BaseSettings):
    """Gateway server configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    server_name: str = Field(default="mcpsocial")
    version: str = Field(default="1.0.0")
    protocol_version: str = Field(default="1.0")
    resource_scheme: str = Field(default="mcpsocial")

    # Dispatch
    validate_types: bool = Field(
        default=False,
        description="Validate argument types against the operation schema",
    )
    invocation_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        extra="ignore"
    )


class ProviderCredentials(BaseSettings):
    """OAuth client credentials for one provider."""
    display_name: ClassVar[str] = "Provider"
    client_id: Optional[str] = None
    client_secret: Optional[SecretStr] = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def id_variable(self) -> str:
        return type(self).model_fields["client_id"].validation_alias.choices[0]

    @property
    def secret_variable(self) -> str:
        return type(self).model_fields["client_secret"].validation_alias.choices[0]

    @property
    def configured(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret and self.client_secret.get_secret_value())

    def require_client_id(self) -> str:
        """Return the client id or fail with the variable to set."""
        if not self.client_id:
            raise ConfigurationError(
                f"{self.display_name} client id is not configured. Set {self.id_variable}."
            )
        return self.client_id

    def require_credentials(self) -> tuple[str, str]:
        """Return (client_id, client_secret) or fail with the variables to set."""
        client_id = self.require_client_id()
        if not self.client_secret or not self.client_secret.get_secret_value():
            raise ConfigurationError(
                f"{self.display_name} client secret is not configured. Set {self.secret_variable}."
            )
        return client_id, self.client_secret.get_secret_value()


class LinkedInSettings(ProviderCredentials):
    display_name: ClassVar[str] = "LinkedIn"
    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LINKEDIN_CLIENT_ID", "LINKEDIN_API_KEY"),
    )
    client_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("LINKEDIN_CLIENT_SECRET", "LINKEDIN_API_SECRET"),
    )


class TwitterSettings(ProviderCredentials):
    display_name: ClassVar[str] = "Twitter"
    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("TWITTER_CLIENT_ID"),
    )
    client_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("TWITTER_CLIENT_SECRET"),
    )


class FacebookSettings(ProviderCredentials):
    display_name: ClassVar[str] = "Facebook"
    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FACEBOOK_APP_ID"),
    )
    client_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("FACEBOOK_APP_SECRET"),
    )


class InstagramSettings(ProviderCredentials):
    display_name: ClassVar[str] = "Instagram"
    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("INSTAGRAM_APP_ID"),
    )
    client_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("INSTAGRAM_APP_SECRET"),
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    # Component settings
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    linkedin: LinkedInSettings = Field(default_factory=LinkedInSettings)
    twitter: TwitterSettings = Field(default_factory=TwitterSettings)
    facebook: FacebookSettings = Field(default_factory=FacebookSettings)
    instagram: InstagramSettings = Field(default_factory=InstagramSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file; a missing file gives the defaults."""
        return cls(**load_yaml_config(path))

    def provider_credentials(self) -> dict[str, ProviderCredentials]:
        """OAuth credentials keyed by provider family."""
        return {
            "linkedin": self.linkedin,
            "twitter": self.twitter,
            "facebook": self.facebook,
            "instagram": self.instagram,
        }


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file as a mapping (empty if the file is missing)."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
