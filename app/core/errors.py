from __future__ import annotations


class ChatGatewayError(Exception):
    status_code: int = 500
    message: str = 'Internal server error'

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class MissingCredentialError(ChatGatewayError):
    status_code = 500
    message = 'DeepSeek API key is not configured'


class InvalidRequestError(ChatGatewayError):
    status_code = 400
    message = 'Messages array is required'


class UpstreamError(ChatGatewayError):
    message = 'Failed to get response from AI service'

    def __init__(self, status_code: int) -> None:
        super().__init__(status_code=status_code)


class EmptyResponseError(ChatGatewayError):
    status_code = 500
    message = 'No response from AI service'


class UnhandledGatewayError(ChatGatewayError):
    status_code = 500
    message = 'Internal server error'


class StoreError(Exception):
    """Raised when a session document operation fails in the database."""


class SessionNotFoundError(StoreError):
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__('Chat session not found')
