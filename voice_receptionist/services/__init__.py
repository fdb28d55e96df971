"""Service layer"""

from .tenant_repository import TenantRepository, JsonTenantRepository, get_tenant_repository
from .tenant_cache import (
    TenantConfigCache,
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    get_tenant_cache,
)
from .call_log import CallLogRepository, SQLiteCallLogRepository, get_call_log
from .conversation import (
    ConversationClient,
    HttpConversationClient,
    OpenAIConversationClient,
    normalize_reply,
    get_conversation_client,
)
from .call_session import CallSessionController, TurnOutcome, get_call_session_controller

__all__ = [
    "TenantRepository",
    "JsonTenantRepository",
    "get_tenant_repository",
    "TenantConfigCache",
    "CacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "get_tenant_cache",
    "CallLogRepository",
    "SQLiteCallLogRepository",
    "get_call_log",
    "ConversationClient",
    "HttpConversationClient",
    "OpenAIConversationClient",
    "normalize_reply",
    "get_conversation_client",
    "CallSessionController",
    "TurnOutcome",
    "get_call_session_controller",
]
