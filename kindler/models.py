"""Data model for Kindler: book records, library snapshots, phases and intents."""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Iterator, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BookRecord(BaseModel):
    """Metadata of one book on the device."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    author: Optional[str] = None
    description: Optional[str] = None
    identifier: Optional[str] = None
    path: Optional[Path] = None


@dataclasses.dataclass(frozen=True)
class Library:
    """Books found by one completed scan, in discovery order."""

    records: tuple[BookRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[BookRecord]:
        return iter(self.records)

    def __getitem__(self, index: int) -> BookRecord:
        return self.records[index]

    def contains(self, record: BookRecord) -> bool:
        """True only for this snapshot's own record objects.

        An equal record from an earlier scan is a different object and is
        rejected.
        """
        return any(item is record for item in self.records)


# --- Phases ---

@dataclasses.dataclass(frozen=True)
class AwaitingDevice:
    pass


@dataclasses.dataclass(frozen=True)
class DeviceFound:
    pass


@dataclasses.dataclass(frozen=True)
class Ready:
    library: Library
    selection: Optional[BookRecord] = None


Phase = Union[AwaitingDevice, DeviceFound, Ready]


# --- Intents submitted by the presentation layer ---

class Refresh(NamedTuple):
    pass


class Select(NamedTuple):
    record: BookRecord


Intent = Union[Refresh, Select]


# --- Completions posted by background tasks ---

class DevicePresent(NamedTuple):
    generation: int


class ScanCompleted(NamedTuple):
    generation: int
    library: Library


Message = Union[Refresh, Select, DevicePresent, ScanCompleted]
