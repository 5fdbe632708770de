from fastapi import APIRouter
from app.api.routes import auth, chat, chats, diagnostics
from app.core.config import settings

api_router = APIRouter(prefix=settings.API_PREFIX)

api_router.include_router(chat.router)
api_router.include_router(diagnostics.router)
api_router.include_router(auth.router)
api_router.include_router(chats.router)
