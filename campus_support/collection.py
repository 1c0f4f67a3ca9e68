"""
Collection
==========
Copy-on-write record list: an ordered tuple of records plus an id → position index.

Mutations are expressed as command objects:

    Insert(item, at_front=True)   add (or move to front) a record
    Replace(item)                 swap the record with the same id
    Remove(item_id)               drop a record
    ReplaceAll(items)             load a fresh page from the backend

`collection.apply(cmd)` never touches the receiver; it returns a new
snapshot, so a consumer holding an older snapshot is never affected.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar, Union

T = TypeVar("T")


# ─── Commands ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Insert:
    item:     Any
    at_front: bool = True


@dataclass(frozen=True)
class Replace:
    item: Any


@dataclass(frozen=True)
class Remove:
    item_id: Any


@dataclass(frozen=True)
class ReplaceAll:
    items: Tuple[Any, ...]


Command = Union[Insert, Replace, Remove, ReplaceAll]


# ─── Collection ───────────────────────────────────────────────────────────────

def _key(item) -> Any:
    return item.id


@dataclass(frozen=True)
class Collection(Generic[T]):
    items:  Tuple[T, ...] = ()
    _index: Dict[Any, int] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def of(cls, items: Sequence[T]) -> "Collection[T]":
        # duplicate ids collapse onto the last occurrence
        deduped: Dict[Any, T] = {}
        for item in items:
            deduped.pop(_key(item), None)
            deduped[_key(item)] = item
        ordered = tuple(deduped.values())
        return cls(items=ordered, _index={_key(it): i for i, it in enumerate(ordered)})

    # ── Read ──────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __contains__(self, item_id) -> bool:
        return item_id in self._index

    def get(self, item_id) -> Optional[T]:
        pos = self._index.get(item_id)
        return None if pos is None else self.items[pos]

    def ids(self) -> List[Any]:
        return [_key(it) for it in self.items]

    def to_list(self) -> List[T]:
        return list(self.items)

    # ── Write (copy-on-write) ─────────────────────────────────────────────────

    def apply(self, command: Command) -> "Collection[T]":
        if isinstance(command, ReplaceAll):
            return Collection.of(command.items)

        if isinstance(command, Insert):
            rest = [it for it in self.items if _key(it) != _key(command.item)]
            if command.at_front:
                return Collection.of([command.item] + rest)
            return Collection.of(rest + [command.item])

        if isinstance(command, Replace):
            pos = self._index.get(_key(command.item))
            if pos is None:
                return self
            items = list(self.items)
            items[pos] = command.item
            return Collection.of(items)

        if isinstance(command, Remove):
            if command.item_id not in self._index:
                return self
            return Collection.of([it for it in self.items if _key(it) != command.item_id])

        raise TypeError(f"Unknown collection command: {command!r}")
