from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from app.api.deps import get_chat_gateway
from app.core.errors import ChatGatewayError, InvalidRequestError, UnhandledGatewayError
from app.schemas.chat import ChatResponse
from app.services.chat_gateway import ChatGateway, parse_chat_request

router = APIRouter(tags=['chat'])


def _error_response(exc: ChatGatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={'error': exc.message})


@router.post('/chat', response_model=ChatResponse)
async def chat(request: Request, gateway: ChatGateway = Depends(get_chat_gateway)):
    # Body is validated by hand so shape errors map to 400 {"error": ...} rather than 422.
    try:
        gateway.ensure_configured()
        try:
            payload = await request.json()
        except ValueError as exc:
            raise InvalidRequestError() from exc
        turns = parse_chat_request(payload)
        result = await gateway.complete(turns)
        return ChatResponse(message=result.message, usage=result.usage)
    except ChatGatewayError as exc:
        return _error_response(exc)
    except ValidationError as exc:
        logger.error('chat.response_invalid', errors=exc.error_count())
        return _error_response(UnhandledGatewayError())
