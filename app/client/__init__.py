from app.client.api import ApiError, ChatApiClient
from app.client.auth import AuthProvider
from app.client.conversation import ConversationController, ConversationState, VisibleMessage
from app.client.history import HistoryPanel, format_timestamp
from app.client.page import ChatPage

__all__ = [
    'ApiError',
    'ChatApiClient',
    'AuthProvider',
    'ConversationController',
    'ConversationState',
    'VisibleMessage',
    'HistoryPanel',
    'format_timestamp',
    'ChatPage',
]
