from fastapi import APIRouter
from .auth import router as auth_router
from .feed import router as feed_router
from .ws import router as ws_router

router = APIRouter()
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(feed_router, prefix='/feed', tags=['feed'])
router.include_router(ws_router, prefix='/ws', tags=['ws'])
