"""
Blob object model.

A Blob is the handle of a committed object: nothing but its identifier.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, order=True)
class Blob:
    """
    Immutable, content-addressed object.

    The identifier is the lowercase hex digest of the object's bytes.
    Equality and hashing are by identifier, so Blobs can be used as
    dict keys and set members.
    """

    id: str

    def short_id(self, length: int = 8) -> str:
        """Abbreviated identifier for display."""
        return self.id[:length]

    def __str__(self) -> str:
        return self.id

    def __repr__(self) -> str:
        return f"Blob({self.short_id()}...)"


BlobRef = Union[Blob, str]


def as_object_id(ref: BlobRef) -> str:
    """Return the identifier for a Blob or an identifier string."""
    if isinstance(ref, Blob):
        return ref.id
    return ref
