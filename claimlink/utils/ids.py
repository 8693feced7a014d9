"""Identifier helpers."""

from typing import Iterable, List, Union
from uuid import UUID

IdLike = Union[UUID, str]


def to_uuid(value: IdLike) -> UUID:
    """Coerce a string or UUID into a UUID.

    Raises:
        ValueError: If the string is not a valid UUID
    """
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def dedupe_ids(ids: Iterable[IdLike]) -> List[str]:
    """Return de-duplicated string ids, preserving first-seen order."""
    seen = {}
    for value in ids:
        if value is None:
            continue
        seen.setdefault(str(value), None)
    return list(seen)
