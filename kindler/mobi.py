"""MOBI metadata extraction for Kindler.

Reads the PalmDB header and record 0 of a Mobipocket book and extracts
title, author, description and ISBN from the MOBI header and its EXTH
block. Plain PalmDOC files (TEXt/REAd) only carry a database name, which
becomes the title.
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Optional

from .models import BookRecord

# name, attributes, version, created, modified, backed up, modnum,
# app info, sort info, type, creator, unique id seed, next record list, records
PDB_HEADER = struct.Struct(">32sHHIIIIII4s4sIIH")
PDB_RECORD_ENTRY = struct.Struct(">I4x")

MOBIPOCKET = (b"BOOK", b"MOBI")
PALMDOC = (b"TEXt", b"REAd")
SUPPORTED_CONTAINERS = {MOBIPOCKET, PALMDOC}

PALMDOC_HEADER_SIZE = 16
MOBI_MAGIC = b"MOBI"
EXTH_MAGIC = b"EXTH"
EXTH_FLAG = 0x40

# Offsets inside record 0
MOBI_HEADER_LENGTH_AT = 20
TEXT_ENCODING_AT = 28
FULL_NAME_AT = 84
EXTH_FLAGS_AT = 128

TEXT_ENCODINGS = {1252: "cp1252", 65001: "utf-8"}

EXTH_AUTHOR = 100
EXTH_DESCRIPTION = 103
EXTH_ISBN = 104
EXTH_UPDATED_TITLE = 503

AUTHOR_SEPARATOR = " & "


class ExtractError(Exception):
    """A candidate file could not be turned into a BookRecord."""

    def __init__(self, path: Path, message: str):
        super().__init__(message)
        self.path = path


class MissingTitle(ExtractError):
    def __init__(self, path: Path):
        super().__init__(path, "no title in book metadata")


class Unreadable(ExtractError):
    def __init__(self, path: Path, cause: str):
        super().__init__(path, cause)
        self.cause = cause


def _clean(raw: bytes, encoding: str) -> Optional[str]:
    text = raw.rstrip(b"\x00").decode(encoding, errors="replace").strip()
    return text or None


def _read_record0(path: Path) -> tuple[tuple[bytes, bytes], bytes, bytes]:
    """Return ((type, creator), database name, record 0 bytes)."""
    with path.open("rb") as handle:
        header = handle.read(PDB_HEADER.size)
        if len(header) < PDB_HEADER.size:
            raise Unreadable(path, "truncated PalmDB header")

        fields = PDB_HEADER.unpack(header)
        name, container, num_records = fields[0], (fields[9], fields[10]), fields[13]
        if container not in SUPPORTED_CONTAINERS:
            raise Unreadable(
                path, f"unsupported container {container[0]!r}/{container[1]!r}"
            )
        if num_records == 0:
            raise Unreadable(path, "PalmDB has no records")

        entries = handle.read(PDB_RECORD_ENTRY.size * min(num_records, 2))
        if len(entries) < PDB_RECORD_ENTRY.size * min(num_records, 2):
            raise Unreadable(path, "truncated record list")

        start = PDB_RECORD_ENTRY.unpack_from(entries, 0)[0]
        if num_records > 1:
            end = PDB_RECORD_ENTRY.unpack_from(entries, PDB_RECORD_ENTRY.size)[0]
        else:
            end = path.stat().st_size
        if end <= start:
            raise Unreadable(path, f"bad record 0 bounds {start}..{end}")

        handle.seek(start)
        record0 = handle.read(end - start)

    if len(record0) < PALMDOC_HEADER_SIZE:
        raise Unreadable(path, "record 0 shorter than PalmDOC header")
    return container, name, record0


def _parse_exth(path: Path, record0: bytes, offset: int) -> dict[int, list[bytes]]:
    """Return EXTH records grouped by type, in file order."""
    if record0[offset:offset + 4] != EXTH_MAGIC:
        raise Unreadable(path, "EXTH flag set but no EXTH block")
    if offset + 12 > len(record0):
        raise Unreadable(path, "truncated EXTH header")

    _, count = struct.unpack_from(">II", record0, offset + 4)
    records: dict[int, list[bytes]] = {}
    pos = offset + 12
    for _ in range(count):
        if pos + 8 > len(record0):
            raise Unreadable(path, "truncated EXTH record")
        rec_type, rec_len = struct.unpack_from(">II", record0, pos)
        if rec_len < 8 or pos + rec_len > len(record0):
            raise Unreadable(path, f"bad EXTH record length {rec_len}")
        records.setdefault(rec_type, []).append(record0[pos + 8:pos + rec_len])
        pos += rec_len
    return records


def extract_metadata(path: Path) -> BookRecord:
    """Parse one book file into a BookRecord.

    Raises MissingTitle when the file parses but carries no title, and
    Unreadable for I/O errors, corruption or unsupported containers.
    """
    try:
        container, name, record0 = _read_record0(path)
    except OSError as exc:
        raise Unreadable(path, str(exc)) from exc

    db_name = _clean(name, "cp1252")

    if container == PALMDOC:
        if db_name is None:
            raise MissingTitle(path)
        return BookRecord(title=db_name, path=path)

    if record0[PALMDOC_HEADER_SIZE:PALMDOC_HEADER_SIZE + 4] != MOBI_MAGIC:
        raise Unreadable(path, "missing MOBI header")
    if len(record0) < TEXT_ENCODING_AT + 4:
        raise Unreadable(path, "truncated MOBI header")

    header_length, = struct.unpack_from(">I", record0, MOBI_HEADER_LENGTH_AT)
    code_page, = struct.unpack_from(">I", record0, TEXT_ENCODING_AT)
    encoding = TEXT_ENCODINGS.get(code_page)
    if encoding is None:
        raise Unreadable(path, f"unsupported text encoding {code_page}")

    header_end = PALMDOC_HEADER_SIZE + header_length
    if header_end > len(record0):
        raise Unreadable(path, f"MOBI header length {header_length} exceeds record 0")

    full_name = None
    if header_end >= FULL_NAME_AT + 8:
        name_offset, name_length = struct.unpack_from(">II", record0, FULL_NAME_AT)
        if name_length:
            if name_offset + name_length > len(record0):
                raise Unreadable(path, "full name outside record 0")
            full_name = _clean(record0[name_offset:name_offset + name_length], encoding)

    exth: dict[int, list[bytes]] = {}
    if header_end >= EXTH_FLAGS_AT + 4:
        flags, = struct.unpack_from(">I", record0, EXTH_FLAGS_AT)
        if flags & EXTH_FLAG:
            exth = _parse_exth(path, record0, header_end)

    def first(rec_type: int) -> Optional[str]:
        for raw in exth.get(rec_type, []):
            value = _clean(raw, encoding)
            if value:
                return value
        return None

    title = first(EXTH_UPDATED_TITLE) or full_name or db_name
    if title is None:
        raise MissingTitle(path)

    authors = [a for a in (_clean(raw, encoding) for raw in exth.get(EXTH_AUTHOR, [])) if a]

    return BookRecord(
        title=title,
        author=AUTHOR_SEPARATOR.join(authors) or None,
        description=first(EXTH_DESCRIPTION),
        identifier=first(EXTH_ISBN),
        path=path,
    )
