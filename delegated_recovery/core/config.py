"""
Environment configuration for the recovery service.

Everything is read once when the application module is imported. A missing
or unusable signing key stops the process there instead of failing later
inside a request.
"""
import os
from typing import Mapping

from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, Field

from delegated_recovery.core.errors import ConfigurationError
from delegated_recovery.core.security import load_private_key
from delegated_recovery.core.token import TokenIssuer


DEFAULT_ISSUER = "http://localhost:8000"
DEFAULT_PROVIDER_ISSUER = "https://www.facebook.com"
DEFAULT_PROVIDER_SAVE_TOKEN = "https://www.facebook.com/recovery/delegated/save-token/"


class Settings(BaseModel):
    """Immutable service settings."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    private_key: ec.EllipticCurvePrivateKey
    issuer: str = Field(DEFAULT_ISSUER, min_length=1)
    provider_issuer: str = Field(DEFAULT_PROVIDER_ISSUER, min_length=1)
    provider_save_token_url: str = Field(DEFAULT_PROVIDER_SAVE_TOKEN, min_length=1)
    privacy_policy_url: str | None = None
    icon_url: str | None = None
    recover_account_return_url: str | None = None

    @property
    def save_token_return_url(self) -> str:
        return f"{self.issuer.rstrip('/')}/save-token/return"

    def token_issuer(self) -> TokenIssuer:
        return TokenIssuer(
            private_key=self.private_key,
            issuer=self.issuer,
            audience=self.provider_issuer,
        )


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        env: Mapping to read from (default: os.environ)

    Raises:
        ConfigurationError: If RECOVERY_PRIVATE_KEY is missing or malformed
    """
    env = os.environ if env is None else env

    private_key = load_private_key(env.get("RECOVERY_PRIVATE_KEY"))

    try:
        return Settings(
            private_key=private_key,
            issuer=env.get("RECOVERY_ISSUER") or DEFAULT_ISSUER,
            provider_issuer=env.get("RECOVERY_PROVIDER_ISSUER") or DEFAULT_PROVIDER_ISSUER,
            provider_save_token_url=env.get("RECOVERY_PROVIDER_SAVE_TOKEN") or DEFAULT_PROVIDER_SAVE_TOKEN,
            privacy_policy_url=env.get("RECOVERY_PRIVACY_POLICY") or None,
            icon_url=env.get("RECOVERY_ICON_URL") or None,
            recover_account_return_url=env.get("RECOVERY_ACCOUNT_RETURN") or None,
        )
    except ValueError as exc:
        raise ConfigurationError(f"Invalid recovery service configuration: {exc}") from exc
