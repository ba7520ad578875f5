"""Use cases deriving conversations from the message log."""

from .aggregation import ConversationAggregator, aggregate_conversations
from .changes import CHANGE_BULK_READ, OptimisticChange
from .commands import (
    ReadScope,
    delete_message,
    get_conversation_messages,
    list_conversations,
    list_messages,
    load_conversation_messages,
    mark_all_messages_read,
    mark_message_read,
    search_messages_for_user,
    send_message,
)
from .search import ConversationFilters, Page, PageRequest, SearchFilters, search_messages
from .unread import UnreadTracker

__all__ = [
    "CHANGE_BULK_READ",
    "ConversationAggregator",
    "ConversationFilters",
    "OptimisticChange",
    "Page",
    "PageRequest",
    "ReadScope",
    "SearchFilters",
    "UnreadTracker",
    "aggregate_conversations",
    "delete_message",
    "get_conversation_messages",
    "list_conversations",
    "list_messages",
    "load_conversation_messages",
    "mark_all_messages_read",
    "mark_message_read",
    "search_messages",
    "search_messages_for_user",
    "send_message",
]
