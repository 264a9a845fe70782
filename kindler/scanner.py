"""Filesystem scanner for Kindler.

Walks the device documents folder and turns every book file into a
BookRecord. The result is a Library snapshot; a missing folder or a
corrupt book never makes the scan fail.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional, Tuple

from .config import ScannerConfig
from .logging_config import get_logger
from .mobi import ExtractError, extract_metadata
from .models import BookRecord, Library

logger = get_logger(__name__)

Extractor = Callable[[Path], BookRecord]


def is_book_file(
    path: Path,
    extensions: Iterable[str] = ("mobi",),
    case_sensitive: bool = False,
) -> bool:
    """Return True if the file name carries one of the book extensions."""
    suffix = path.suffix.lstrip(".")
    if not case_sensitive:
        suffix = suffix.lower()
        extensions = (ext.lower() for ext in extensions)
    return suffix in set(extensions)


def _should_ignore(name: str, ignore_patterns: Iterable[str]) -> bool:
    """Check if file/folder should be ignored based on patterns or macOS temp files."""
    if name.startswith("._"):
        return True
    return name in ignore_patterns


def _log_walk_error(exc: OSError) -> None:
    logger.error(f"✗ Cannot read {exc.filename}: {exc.strerror}")


def walk_library(
    root: Path,
    ignore_patterns: Tuple[str, ...] = (),
) -> Iterator[Tuple[Path, list[Path]]]:
    """Yield (directory, files) under root in a stable, sorted order.

    Files of a directory are yielded before its subdirectories are visited.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error):
        dir_path = Path(dirpath)

        # Filter and sort in-place so os.walk descends in a fixed order
        dirnames[:] = sorted(
            d for d in dirnames if not _should_ignore(d, ignore_patterns)
        )

        files = [
            dir_path / f
            for f in sorted(filenames)
            if not _should_ignore(f, ignore_patterns)
        ]
        yield dir_path, files


def scan_library(
    root: Path,
    config: Optional[ScannerConfig] = None,
    extractor: Extractor = extract_metadata,
) -> Library:
    """Scan `root` for books and return them as a Library.

    :param root: Device documents folder.
    :param config: Extension filter and ignore patterns.
    :param extractor: Turns one file into a BookRecord, raising ExtractError.
    :return: Library in traversal order; empty when root is missing.
    """
    config = config or ScannerConfig()

    if not root.is_dir():
        logger.warning(f"Scan root does not exist: {root}")
        return Library()

    records: list[BookRecord] = []
    skipped = 0

    for dir_path, files in walk_library(root, tuple(config.ignore_patterns)):
        candidates = [
            f for f in files
            if is_book_file(f, config.extensions, config.case_sensitive)
        ]

        rel_folder = dir_path.relative_to(root)
        folder_display = str(rel_folder) if str(rel_folder) != "." else "root"
        logger.info(f"[SCAN] {folder_display} ({len(candidates)} files)")

        for book_path in candidates:
            try:
                record = extractor(book_path)
            except ExtractError as exc:
                logger.error(f"✗ {book_path.name} - {exc}")
                skipped += 1
                continue

            logger.debug(f"✓ {book_path.name} ({record.title})")
            records.append(record)

    logger.info(f"Scan complete: {len(records)} books, {skipped} skipped.")
    return Library(tuple(records))
