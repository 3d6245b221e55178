# Copyright (c) 2026 Firefly Software Solutions Inc.
# Licensed under the Apache License, Version 2.0

"""Type definitions for pyami."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Union, overload


class Record(Mapping[str, str]):
    """
    One parsed AMI packet.

    Keys are lowercased and trimmed, values are trimmed. A Record is
    read-only and compares equal to any mapping holding the same items:

        >>> Record({"peer": "1000"}) == {"peer": "1000"}
        True
    """

    __slots__ = ("_data",)

    def __init__(self, items: Mapping[str, str] | Iterable[tuple[str, str]] = ()) -> None:
        self._data: dict[str, str] = dict(items)

    def __getitem__(self, key: str) -> str:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Record({self._data!r})"

    def without(self, *keys: str) -> Record:
        """Return a copy of this record with the given keys removed."""
        return Record((k, v) for k, v in self._data.items() if k not in keys)

    def to_dict(self) -> dict[str, str]:
        """Return a plain dict copy."""
        return dict(self._data)


@dataclass(frozen=True)
class RecordResult:
    """Outcome of a single-record (request/response) exchange."""

    record: Record
    response: str | None = None
    action_id: str | None = None

    @property
    def success(self) -> bool:
        """True if the server answered ``Response: Success``."""
        return (self.response or "").lower() == "success"


@dataclass(frozen=True)
class RecordSequence:
    """Outcome of an event-collection exchange, in receipt order."""

    records: tuple[Record, ...] = ()

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @overload
    def __getitem__(self, index: int) -> Record: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Record, ...]: ...

    def __getitem__(self, index):
        return self.records[index]


@dataclass(frozen=True)
class RawText:
    """Outcome of a raw-mode exchange."""

    text: str

    def __str__(self) -> str:
        return self.text


Outcome = Union[RecordResult, RecordSequence, RawText]


@dataclass(frozen=True)
class Queue:
    """A call queue and its members, as reported by QueueStatus."""

    name: str
    params: Record
    members: dict[str, Record] = field(default_factory=dict)
