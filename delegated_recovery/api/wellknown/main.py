from fastapi import APIRouter, Depends, Response

from delegated_recovery.api.dependencies import get_settings, get_token_issuer
from delegated_recovery.api.wellknown.models import AccountProviderConfiguration
from delegated_recovery.core.config import Settings
from delegated_recovery.core.security import public_key_to_b64
from delegated_recovery.core.token import TokenIssuer

router = APIRouter(prefix="/.well-known/delegated-account-recovery")


@router.get(
    "/configuration",
    response_model=AccountProviderConfiguration,
    response_model_exclude_none=True,
)
def configuration(
    response: Response,
    settings: Settings = Depends(get_settings),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """
    Account provider configuration for the recovery provider.

    Publishes the key that signs recovery tokens and where to send users
    after they saved one. Public endpoint - no authentication required.
    """
    response.headers["Cache-Control"] = "public, max-age=3600"
    return AccountProviderConfiguration(
        issuer=settings.issuer,
        save_token_return=settings.save_token_return_url,
        recover_account_return=settings.recover_account_return_url,
        privacy_policy=settings.privacy_policy_url,
        icon_152px=settings.icon_url,
        tokensign_pubkeys_secp256r1=[public_key_to_b64(issuer.public_key)],
    )
