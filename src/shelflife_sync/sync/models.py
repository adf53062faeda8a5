"""Pydantic models for the synchronization layer.

Defines the core data contracts shared by the cache, the stores and the
repository:

- ``Entity``: Base class for every uid-identified domain record.
- ``MutationKind``: Enum of optimistic mutation types.
- ``MutationResult``: Outcome of one optimistic mutation.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Entity(BaseModel):
    """A uid-identified record kept in an ``ObservableCache``.

    Two entities are the same entity iff they have the same type and
    ``uid``; every other field may differ.  Use ``same_as()`` to compare
    field values as well.

    Documents use camelCase keys (``sharedRecipes``, ``foodFacts``) so the
    encoded form matches what the remote collections already hold.

    Attributes:
        uid: Remote-store-unique identifier.
    """

    uid: str

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return type(self) is type(other) and self.uid == other.uid

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.uid))

    def same_as(self, other: Entity | None) -> bool:
        """Return ``True`` if *other* has the same uid and field values."""
        if other is None or type(self) is not type(other):
            return False
        return self.model_dump() == other.model_dump()

    def to_document(self) -> dict[str, Any]:
        """Encode as a JSON-safe document for the remote store."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Self:
        """Decode a remote document.

        Raises:
            pydantic.ValidationError: If the document does not describe a
                valid entity of this type.
        """
        return cls.model_validate(data)


class MutationKind(str, Enum):
    """Optimistic mutation types issued by ``SyncRepository``."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"


class MutationResult(BaseModel):
    """Outcome of one optimistic mutation.

    Truthiness follows ``committed`` so callers can write
    ``if await repo.delete(uid): ...``.

    Attributes:
        kind: Which mutator produced this result.
        uid: Identifier of the mutated entity.
        committed: ``True`` if the remote write succeeded, ``False`` if the
            optimistic change was rolled back.
        error: Error message when the remote write failed.
    """

    kind: MutationKind
    uid: str
    committed: bool
    error: str | None = None

    model_config = {"frozen": True}

    def __bool__(self) -> bool:
        return self.committed

    @property
    def rolled_back(self) -> bool:
        return not self.committed
