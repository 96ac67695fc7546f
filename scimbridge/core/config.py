from typing import Optional, Set
from urllib.parse import quote

import httpx
from pydantic import SecretStr
from pydantic_settings import BaseSettings

from scimbridge.core.errors import ConfigurationError
from scimbridge.models.patch import EmptyValuePolicy


class ConnectorSettings(BaseSettings):
    # Application Settings
    APP_NAME: str = "SCIM Connector"
    DEBUG: bool = False

    # Directory endpoint
    BASE_URL: str = ""  # REQUIRED: e.g. https://directory.example.com
    SCIM_PATH: str = "/scim/v2"
    TOKEN: Optional[SecretStr] = None  # REQUIRED: bearer token

    # HTTP proxy (optional)
    HTTP_PROXY_HOST: Optional[str] = None
    HTTP_PROXY_PORT: int = 3128
    HTTP_PROXY_USER: Optional[str] = None
    HTTP_PROXY_PASSWORD: Optional[SecretStr] = None

    # Transport timeouts, configured once at client construction
    CONNECTION_TIMEOUT_MS: int = 10000
    READ_TIMEOUT_MS: int = 10000
    WRITE_TIMEOUT_MS: int = 10000

    # Query behaviour
    DEFAULT_QUERY_PAGE_SIZE: int = 50
    OFFSET_KEY: str = "startIndex"
    COUNT_KEY: str = "count"
    # Whether the list endpoint counts its start index from 0 instead of 1
    USERS_START_OFFSET_FROM_ZERO: bool = False
    GROUPS_START_OFFSET_FROM_ZERO: bool = False

    # How a single-valued delta with no value is sent to the directory
    EMPTY_VALUE_POLICY: EmptyValuePolicy = EmptyValuePolicy.EMPTY_STRING

    # Groups
    # Comma-separated group displayNames skipped when searching by member.
    # Matched case-insensitively.
    IGNORE_GROUP: str = ""
    UNIQUE_CHECK_GROUP_DISPLAY_NAME_ENABLED: bool = True

    @property
    def scim_base_url(self) -> str:
        """Generate the SCIM root URL from the base URL."""
        return f"{self.BASE_URL.rstrip('/')}{self.SCIM_PATH}"

    @property
    def ignore_group_set(self) -> Set[str]:
        """Parse IGNORE_GROUP into a lower-cased set."""
        return {
            group.strip().lower() for group in self.IGNORE_GROUP.split(",") if group.strip()
        }

    @property
    def proxy_url(self) -> Optional[str]:
        """Generate the proxy URL, with credentials when both are configured."""
        if not self.HTTP_PROXY_HOST:
            return None
        if self.HTTP_PROXY_USER and self.HTTP_PROXY_PASSWORD is not None:
            user = quote(self.HTTP_PROXY_USER, safe="")
            password = quote(self.HTTP_PROXY_PASSWORD.get_secret_value(), safe="")
            return f"http://{user}:{password}@{self.HTTP_PROXY_HOST}:{self.HTTP_PROXY_PORT}"
        return f"http://{self.HTTP_PROXY_HOST}:{self.HTTP_PROXY_PORT}"

    @property
    def timeout(self) -> httpx.Timeout:
        """Connect/read/write timeouts in seconds for the HTTP client."""
        return httpx.Timeout(
            connect=self.CONNECTION_TIMEOUT_MS / 1000,
            read=self.READ_TIMEOUT_MS / 1000,
            write=self.WRITE_TIMEOUT_MS / 1000,
            pool=self.CONNECTION_TIMEOUT_MS / 1000,
        )

    def validate_settings(self) -> None:
        """
        Check the settings a connector session cannot start without.

        Raises:
            ConfigurationError: If a required value is missing or out of range
        """
        if not self.BASE_URL:
            raise ConfigurationError("SCIM_BASE_URL is required")
        if self.TOKEN is None or not self.TOKEN.get_secret_value():
            raise ConfigurationError("SCIM_TOKEN is required")
        if self.DEFAULT_QUERY_PAGE_SIZE < 1:
            raise ConfigurationError("SCIM_DEFAULT_QUERY_PAGE_SIZE must be at least 1")
        for key in ("CONNECTION_TIMEOUT_MS", "READ_TIMEOUT_MS", "WRITE_TIMEOUT_MS"):
            if getattr(self, key) < 0:
                raise ConfigurationError(f"SCIM_{key} must not be negative")

    class Config:
        env_prefix = "SCIM_"
        env_file = ".env"
        case_sensitive = True
