"""Configuration for the HTTP runtime store."""

from pydantic import BaseModel, SecretStr


class HttpStoreConfig(BaseModel):
    """Configuration for the HTTP runtime store."""

    base_url: str
    token: SecretStr | None = None
    timeout: float = 30.0
