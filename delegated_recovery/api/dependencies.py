"""
FastAPI dependencies wiring the recovery core to a request.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from delegated_recovery.core.config import Settings
from delegated_recovery.core.controller import RecoveryController
from delegated_recovery.core.db.session import get_db
from delegated_recovery.core.db.store import SqlRecordStore
from delegated_recovery.core.lifecycle import TokenLifecycle
from delegated_recovery.core.token import TokenIssuer


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_lifecycle(session: Session = Depends(get_db)) -> TokenLifecycle:
    return TokenLifecycle(SqlRecordStore(session))


def get_controller(
    lifecycle: TokenLifecycle = Depends(get_lifecycle),
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
) -> RecoveryController:
    return RecoveryController(lifecycle, issuer, settings.provider_save_token_url)
