"""Client configuration model."""

import httpx
from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "http://livebox.home"
DEFAULT_USERNAME = "admin"


class ClientConfig(BaseModel):
    """Connection settings for one command-line invocation.

    Built from command-line arguments, whose defaults come from the
    environment.
    """

    base_url: str = Field(DEFAULT_BASE_URL, description="Livebox base URL")
    username: str = Field(DEFAULT_USERNAME, min_length=1, description="Administration username")
    password: str = Field(repr=False, min_length=1, description="Administration password")
    insecure: bool = Field(False, description="Skip TLS certificate verification")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate the base URL scheme and strip any trailing slash.

        Args:
            v: Base URL to validate

        Returns:
            The base URL without trailing slash

        Raises:
            ValueError: If the URL cannot be parsed, is not http or https, or
                has no host
        """
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://: {v!r}")
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"Invalid base URL {v!r}: {e}") from e
        if not url.host:
            raise ValueError(f"Base URL has no host: {v!r}")
        return v.rstrip("/")
