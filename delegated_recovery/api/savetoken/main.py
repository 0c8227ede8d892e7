"""
Save-token pages: start saving a recovery token at the recovery provider,
land back from it, and locally invalidate a token.
"""
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from delegated_recovery.api.dependencies import get_controller
from delegated_recovery.api.templating import templates
from delegated_recovery.core.controller import RecoveryController, SaveResult
from delegated_recovery.core.errors import MissingUsernameError
from delegated_recovery.core.logger import get_logger
from delegated_recovery.core.rate_limit import SAVE_TOKEN_RATE_LIMIT, limiter

logger = get_logger(__name__)

router = APIRouter()

HOME = "/"
SAVE_TOKEN = "/save-token"
INVALIDATE_TOKEN = "/invalidate-token"


def save_token_url_for(username: str | None) -> str:
    return f"{SAVE_TOKEN}?{urlencode({'username': username or ''})}"


@router.get("/", response_class=HTMLResponse)
def index(request: Request):
    """Landing page asking which account to protect"""
    return templates.TemplateResponse(request, "index.html", {"action": SAVE_TOKEN})


@router.get("/save-token", response_class=HTMLResponse)
@limiter.limit(SAVE_TOKEN_RATE_LIMIT)
def save_token(
    request: Request,
    username: str | None = None,
    controller: RecoveryController = Depends(get_controller),
):
    """
    Issue a recovery token and ask the user to save it at the recovery provider.

    If the user already has a confirmed token, the page offers to replace it
    with the new one or to invalidate it locally.
    """
    try:
        offer = controller.begin_save(username)
    except MissingUsernameError:
        logger.info("Save-token request without username, redirecting home")
        return RedirectResponse(url=HOME, status_code=302)

    context = {
        "username": offer.username,
        "encoded_token": offer.encoded_token,
        "save_token": offer.save_token_url,
        "state": offer.state.format(),
    }

    if not offer.is_renewal:
        return templates.TemplateResponse(request, "save_token.html", context)

    context.update({
        "action": INVALIDATE_TOKEN,
        "id": offer.obsoletes,
        "obsoletes": offer.obsoletes,
    })
    return templates.TemplateResponse(request, "invalidate_token.html", context)


@router.get("/save-token/return", response_class=HTMLResponse)
def save_token_return(
    request: Request,
    state: str | None = None,
    save_status: str | None = Query(None, alias="status"),
    controller: RecoveryController = Depends(get_controller),
):
    """Landing page when the recovery provider sends the user back"""
    outcome = controller.complete_save(state, save_status)

    if outcome.result == SaveResult.UNKNOWN:
        return templates.TemplateResponse(
            request,
            "unknown_token.html",
            {"action": HOME, "id": outcome.token_id},
            status_code=404,
        )

    if outcome.result == SaveResult.SAVED:
        return templates.TemplateResponse(
            request,
            "save_token_success.html",
            {"username": outcome.username, "obsoleted_id": outcome.obsoleted_id},
        )

    return templates.TemplateResponse(
        request,
        "save_token_failure.html",
        {"username": outcome.username, "home_action": save_token_url_for(outcome.username)},
    )


@router.get("/invalidate-token")
def invalidate_token(
    token_id: str | None = Query(None, alias="id"),
    username: str | None = None,
    controller: RecoveryController = Depends(get_controller),
):
    """Locally mark a token as no longer valid, then start over"""
    controller.invalidate(token_id, username)
    return RedirectResponse(url=save_token_url_for(username), status_code=302)
