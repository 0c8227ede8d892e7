from fastapi import APIRouter
from delegated_recovery.api.savetoken.main import router as save_token_router
from delegated_recovery.api.wellknown.main import router as wellknown_router

router = APIRouter()
router.include_router(save_token_router)
router.include_router(wellknown_router)
