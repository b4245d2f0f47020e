"""
Identity index: maps external user/entity ids to dense embedding rows.

Slots are assigned on first sight, in order, and never reused. The
recommender only talks to the `IdentityIndex` interface so a persistent
backend can replace the in-memory default.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple, TypedDict, Union

Id = Union[str, int]


class IndexSnapshot(TypedDict):
    userMap: List[Tuple[Id, int]]
    entityMap: List[Tuple[Id, int]]
    reverseUserMap: List[Id]
    reverseEntityMap: List[Id]


def validate_id(value) -> Id:
    """Ids are str or int. bool is rejected even though it is an int."""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise TypeError(f"Id must be str or int, got {type(value).__name__}: {value!r}")
    return value


class IdentityIndex(ABC):
    """Bidirectional id <-> slot mapping for users and entities."""

    @abstractmethod
    async def get_user_index(self, id: Id) -> Optional[int]: ...

    @abstractmethod
    async def get_or_create_user_index(self, id: Id) -> int: ...

    @abstractmethod
    async def get_entity_index(self, id: Id) -> Optional[int]: ...

    @abstractmethod
    async def get_or_create_entity_index(self, id: Id) -> int: ...

    @abstractmethod
    async def get_all_users(self) -> List[Id]:
        """User ids in slot order."""

    @abstractmethod
    async def get_all_entities(self) -> List[Id]:
        """Entity ids in slot order."""

    @abstractmethod
    async def export_data(self) -> IndexSnapshot: ...

    @abstractmethod
    async def import_data(self, data: IndexSnapshot) -> None: ...


class _SlotMap:
    """One id space: forward dict plus reverse list."""

    def __init__(self):
        self.forward = {}
        self.reverse = []

    def get(self, id: Id) -> Optional[int]:
        return self.forward.get(validate_id(id))

    def get_or_create(self, id: Id) -> int:
        id = validate_id(id)
        slot = self.forward.get(id)
        if slot is None:
            slot = len(self.reverse)
            self.forward[id] = slot
            self.reverse.append(id)
        return slot

    def load(self, pairs, reverse):
        forward = {validate_id(id): int(slot) for id, slot in pairs}
        reverse = [validate_id(id) for id in reverse]
        if len(forward) != len(reverse) or any(
            slot >= len(reverse) or reverse[slot] != id for id, slot in forward.items()
        ):
            raise ValueError("Forward and reverse id maps disagree")
        self.forward = forward
        self.reverse = reverse


class InMemoryIdentityIndex(IdentityIndex):
    """
    Dict/list backed index. Suitable for development and datasets that fit
    in memory.
    """

    def __init__(self):
        self._users = _SlotMap()
        self._entities = _SlotMap()

    async def get_user_index(self, id: Id) -> Optional[int]:
        return self._users.get(id)

    async def get_or_create_user_index(self, id: Id) -> int:
        return self._users.get_or_create(id)

    async def get_entity_index(self, id: Id) -> Optional[int]:
        return self._entities.get(id)

    async def get_or_create_entity_index(self, id: Id) -> int:
        return self._entities.get_or_create(id)

    async def get_all_users(self) -> List[Id]:
        return self._users.reverse

    async def get_all_entities(self) -> List[Id]:
        return self._entities.reverse

    async def export_data(self) -> IndexSnapshot:
        return {
            "userMap": list(self._users.forward.items()),
            "entityMap": list(self._entities.forward.items()),
            "reverseUserMap": list(self._users.reverse),
            "reverseEntityMap": list(self._entities.reverse),
        }

    async def import_data(self, data: IndexSnapshot) -> None:
        self._users.load(data["userMap"], data["reverseUserMap"])
        self._entities.load(data["entityMap"], data["reverseEntityMap"])
