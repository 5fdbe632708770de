from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx
from loguru import logger
from openai import APIStatusError, AsyncOpenAI
from pydantic import ValidationError

from app.core.config import Settings
from app.core.errors import (
    EmptyResponseError,
    InvalidRequestError,
    MissingCredentialError,
    UnhandledGatewayError,
    UpstreamError,
)
from app.models.enums import ChatRole
from app.schemas.chat import ChatRequest, ChatTurn


@dataclass(frozen=True)
class ChatCompletionResult:
    message: str
    usage: Optional[dict[str, Any]]


def parse_chat_request(payload: Any) -> list[ChatTurn]:
    try:
        request = ChatRequest.model_validate(payload)
    except ValidationError as exc:
        logger.info('chat_gateway.invalid_request', errors=exc.error_count())
        raise InvalidRequestError() from exc
    return request.messages


def build_upstream_messages(system_prompt: str, turns: Sequence[ChatTurn]) -> list[dict[str, str]]:
    messages = [{'role': ChatRole.SYSTEM.value, 'content': system_prompt}]
    messages.extend({'role': turn.role.value, 'content': turn.content} for turn in turns)
    return messages


def _first_choice_text(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    choices = data.get('choices') or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get('message') or {}
    content = message.get('content') if isinstance(message, dict) else None
    return content or None


class ChatGateway:
    """Relays a conversation to the chat-completion API with a fixed system turn."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        system_prompt: str,
    ) -> None:
        self._client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.system_prompt = system_prompt

    @property
    def configured(self) -> bool:
        return self._client is not None

    def ensure_configured(self) -> AsyncOpenAI:
        if self._client is None:
            raise MissingCredentialError()
        return self._client

    async def complete(self, turns: Sequence[ChatTurn]) -> ChatCompletionResult:
        client = self.ensure_configured()
        messages = build_upstream_messages(self.system_prompt, turns)
        logger.info(
            json.dumps(
                {
                    'event': 'chat_gateway.request',
                    'model': self.model,
                    'turns': len(turns),
                },
                ensure_ascii=False,
            )
        )
        try:
            raw = await client.chat.completions.with_raw_response.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=False,
            )
            data = raw.http_response.json()
        except APIStatusError as exc:
            logger.error(
                'chat_gateway.upstream_error',
                status=exc.status_code,
                body=exc.response.text,
            )
            raise UpstreamError(exc.status_code) from exc
        except Exception as exc:
            logger.exception('chat_gateway.unhandled_error')
            raise UnhandledGatewayError() from exc

        content = _first_choice_text(data)
        if content is None:
            logger.error('chat_gateway.empty_response', model=self.model)
            raise EmptyResponseError()
        return ChatCompletionResult(message=content, usage=data.get('usage'))

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def build_chat_gateway(
    config: Settings,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChatGateway:
    client: Optional[AsyncOpenAI] = None
    if config.DEEPSEEK_API_KEY:
        client = AsyncOpenAI(
            api_key=config.DEEPSEEK_API_KEY,
            base_url=config.deepseek_api_base,
            max_retries=0,
            http_client=http_client,
        )
    else:
        logger.warning('chat_gateway.missing_credential')
    return ChatGateway(
        client,
        model=config.CHAT_MODEL,
        temperature=config.CHAT_TEMPERATURE,
        max_tokens=config.CHAT_MAX_TOKENS,
        system_prompt=config.SYSTEM_PROMPT,
    )
