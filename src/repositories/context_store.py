"""
Context Store Interface

Abstract persistence for ConversationContext records keyed by session id.
Backends raise StoreError for any underlying failure.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from pydantic import BaseModel

from src.models.context import ConversationContext

# Field-name keyed partial of a ConversationContext
ContextPatch = Dict[str, Any]

# Fields nobody may set through a patch
_PROTECTED_FIELDS = {"id", "_id", "session_id", "created_at"}


def normalize_patch(patch: ContextPatch) -> ContextPatch:
    """
    Validate field names and turn nested models into plain dicts.

    Raises:
        ValueError: If the patch names a field ConversationContext does not have
    """
    fields = ConversationContext.model_fields
    normalized: ContextPatch = {}
    for key, value in patch.items():
        if key in _PROTECTED_FIELDS:
            continue
        if key not in fields:
            raise ValueError(f"Unknown context field: {key}")
        if isinstance(value, BaseModel):
            value = value.model_dump()
        elif isinstance(value, list):
            value = [item.model_dump() if isinstance(item, BaseModel) else item for item in value]
        normalized[key] = value
    return normalized


class ContextStore(ABC):
    """
    Session-keyed persistence for ConversationContext.

    Implementations must provide:
    - get: Read the whole record
    - store: Create-if-absent and merge the given fields
    - update: Merge the given fields into an existing record only
    - ensure: Insert with the given fields only if no record exists
    - delete: Remove the record
    """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[ConversationContext]:
        """
        Read a session's context.

        Returns:
            A detached copy of the record, or None if absent
        """
        pass

    @abstractmethod
    async def store(self, session_id: str, partial: ContextPatch) -> None:
        """
        Create the record if absent, then merge the given fields.

        Args:
            session_id: Session key
            partial: Field-name keyed values to write
        """
        pass

    @abstractmethod
    async def update(self, session_id: str, patch: ContextPatch) -> None:
        """
        Merge the given fields into an existing record.
        Fields absent from the patch are untouched. A missing record is a no-op.
        """
        pass

    @abstractmethod
    async def ensure(self, session_id: str, defaults: ContextPatch) -> bool:
        """
        Insert a record with the given fields unless one already exists.

        Returns:
            True if a record was created
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """
        Remove a session's context.

        Returns:
            True if a record was deleted
        """
        pass

    async def connect(self) -> None:
        """Prepare backend resources. Called once at application startup."""
        pass

    async def close(self) -> None:
        """Release backend resources. Called once at application shutdown."""
        pass

    async def ping(self) -> bool:
        """Readiness probe."""
        return True
