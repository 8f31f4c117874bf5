"""
Call Record Store Interface
Abstract base class for call request persistence
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pharmacall.domain.models.call_request import CallRequest


FieldUpdate = Tuple[str, Dict[str, Any]]


class CallRecordStore(ABC):
    """
    Abstract base class for call request storage.

    Implementations raise StoreUnavailable when the backend is over quota or
    unreachable, and NotFound when updating an unknown id.
    """

    @abstractmethod
    async def create(self, call: CallRequest) -> CallRequest:
        """
        Persist a new call request.

        created_at/updated_at are assigned by the store.

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    async def get(self, call_id: str) -> Optional[CallRequest]:
        """Get a call request by id, or None"""
        pass

    @abstractmethod
    async def update_fields(self, call_id: str, fields: Dict[str, Any]) -> CallRequest:
        """
        Overwrite the given fields of one record (last writer wins).

        Raises:
            NotFound: If the id does not exist
        """
        pass

    @abstractmethod
    async def query_active_ordered(self) -> List[CallRequest]:
        """
        All active call requests ordered by created_at ascending.

        Records with equal created_at keep insertion order.
        """
        pass

    @abstractmethod
    async def batch_update(self, updates: Sequence[FieldUpdate]) -> None:
        """
        Apply several (id, fields) updates atomically.

        Either every update is applied or none is. Records that have
        reached a terminal status since the caller read them are skipped.

        Raises:
            NotFound: If any id does not exist
        """
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 50) -> List[CallRequest]:
        """Most recently created call requests first"""
        pass

    @abstractmethod
    async def count_all(self) -> int:
        """Total number of stored call requests"""
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """
        Delete every call request in one atomic operation.

        Returns:
            Number of records deleted
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name"""
        pass
