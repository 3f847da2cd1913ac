"""
Repositories Layer
Conversation context persistence for the intelligence pipeline.
"""
from .connection import db_manager, DatabaseManager
from .context_store import ContextStore, ContextPatch
from .memory_store import InMemoryContextStore
from .mongo_store import MongoContextStore

__all__ = [
    "db_manager",
    "DatabaseManager",
    "ContextStore",
    "ContextPatch",
    "InMemoryContextStore",
    "MongoContextStore",
]
