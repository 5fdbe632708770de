from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.api.deps import get_chat_gateway
from app.core.config import settings
from app.services.chat_gateway import ChatGateway

router = APIRouter(prefix='/test', tags=['diagnostics'])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get('')
def diagnostics(gateway: ChatGateway = Depends(get_chat_gateway)) -> dict:
    return {
        'message': 'API routes are working!',
        'timestamp': _timestamp(),
        'environment': settings.ENV,
        'apiKeyPresent': gateway.configured,
    }


@router.post('')
def diagnostics_post() -> dict:
    return {
        'message': 'POST endpoint is working!',
        'timestamp': _timestamp(),
    }
