from pydantic import BaseModel, ConfigDict, Field


class AccountProviderConfiguration(BaseModel):
    """Discovery document the recovery provider fetches from this service"""
    model_config = ConfigDict(populate_by_name=True)

    issuer: str
    save_token_return: str = Field(..., alias="save-token-return")
    recover_account_return: str | None = Field(None, alias="recover-account-return")
    privacy_policy: str | None = Field(None, alias="privacy-policy")
    icon_152px: str | None = Field(None, alias="icon-152px")
    tokensign_pubkeys_secp256r1: list[str] = Field(..., alias="tokensign-pubkeys-secp256r1")
