"""Shared fixtures: MOBI files built byte by byte."""

import struct
from pathlib import Path

import pytest

MOBI_HEADER_LENGTH = 232


def _build_mobi(
    title=None,
    author=None,
    description=None,
    isbn=None,
    db_name="",
    updated_title=None,
    extra_exth=(),
    code_page=65001,
    container=(b"BOOK", b"MOBI"),
    mobi_magic=b"MOBI",
) -> bytes:
    """Return the bytes of a minimal one-text-record MOBI book."""
    encoding = "utf-8" if code_page == 65001 else "cp1252"

    exth = []
    authors = author if isinstance(author, (list, tuple)) else [author]
    for name in authors:
        if name is not None:
            exth.append((100, name.encode(encoding)))
    if description is not None:
        exth.append((103, description.encode(encoding)))
    if isbn is not None:
        exth.append((104, isbn.encode(encoding)))
    if updated_title is not None:
        exth.append((503, updated_title.encode(encoding)))
    exth.extend(extra_exth)

    exth_records = b"".join(struct.pack(">II", t, len(d) + 8) + d for t, d in exth)
    exth_block = b"EXTH" + struct.pack(">II", 12 + len(exth_records), len(exth)) + exth_records
    exth_block += b"\x00" * (-len(exth_block) % 4)

    name_bytes = (title or "").encode(encoding)

    header = bytearray(16 + MOBI_HEADER_LENGTH)
    struct.pack_into(">HHIHHHH", header, 0, 1, 0, 5, 1, 4096, 0, 0)
    header[16:20] = mobi_magic
    struct.pack_into(">IIII", header, 20, MOBI_HEADER_LENGTH, 2, code_page, 12345)
    struct.pack_into(">I", header, 36, 6)
    full_name_offset = len(header) + len(exth_block)
    struct.pack_into(">II", header, 84, full_name_offset, len(name_bytes))
    struct.pack_into(">I", header, 128, 0x40 if exth else 0)

    record0 = bytes(header) + exth_block + name_bytes + b"\x00\x00"
    text_record = b"Hello"

    pdb = bytearray(78)
    pdb[0:32] = db_name.encode("cp1252")[:31].ljust(32, b"\x00")
    pdb[60:64], pdb[64:68] = container
    struct.pack_into(">H", pdb, 76, 2)
    record0_offset = 78 + 2 * 8 + 2
    record1_offset = record0_offset + len(record0)
    entries = struct.pack(">I4x", record0_offset) + struct.pack(">I4x", record1_offset)

    return bytes(pdb) + entries + b"\x00\x00" + record0 + text_record


@pytest.fixture
def build_mobi():
    """The MOBI byte builder, for tests that need to mangle the raw bytes."""
    return _build_mobi


@pytest.fixture
def make_book(tmp_path):
    """Write a MOBI file under tmp_path and return its path."""

    def _make(relative: str, root: Path = tmp_path, **fields) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(_build_mobi(**fields))
        return path

    return _make
