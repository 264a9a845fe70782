"""Tests for the library scanner."""

from pathlib import Path

from kindler.config import ScannerConfig
from kindler.mobi import Unreadable
from kindler.models import BookRecord
from kindler.scanner import is_book_file, scan_library, walk_library


def test_is_book_file_case_insensitive_by_default():
    assert is_book_file(Path("/books/a.mobi"))
    assert is_book_file(Path("/books/A.MOBI"))
    assert not is_book_file(Path("/books/a.epub"))
    assert not is_book_file(Path("/books/mobi"))


def test_is_book_file_case_sensitive():
    assert is_book_file(Path("a.mobi"), ("mobi",), case_sensitive=True)
    assert not is_book_file(Path("A.MOBI"), ("mobi",), case_sensitive=True)


def test_missing_root_gives_empty_library(tmp_path):
    library = scan_library(tmp_path / "nonexistent" / "path")
    assert len(library) == 0


def test_empty_device(tmp_path):
    (tmp_path / "documents").mkdir()
    (tmp_path / "documents" / "notes.txt").write_text("hello")
    assert len(scan_library(tmp_path / "documents")) == 0


def test_two_books_in_traversal_order(tmp_path, make_book):
    make_book("B.mobi", title="Beta")
    make_book("A.mobi", title="Alpha", author="X")

    library = scan_library(tmp_path)

    assert [b.title for b in library] == ["Alpha", "Beta"]
    assert library[0].author == "X"
    assert library[1].author is None


def test_files_before_subfolders_sorted(tmp_path, make_book):
    make_book("z-top.mobi", title="Top")
    make_book("sub/b.mobi", title="Sub B")
    make_book("sub/a.mobi", title="Sub A")
    make_book("another/c.mobi", title="Another C")

    library = scan_library(tmp_path)

    assert [b.title for b in library] == ["Top", "Another C", "Sub A", "Sub B"]


def test_corrupt_book_is_skipped(tmp_path, make_book):
    """One corrupt file never aborts the scan of the others."""
    make_book("1.mobi", title="One")
    (tmp_path / "2.mobi").write_bytes(b"\x00" * 10)
    make_book("3.mobi", title="Three")
    make_book("4.mobi", author="No title here")

    library = scan_library(tmp_path)

    assert [b.title for b in library] == ["One", "Three"]


def test_scan_is_repeatable(tmp_path, make_book):
    make_book("a.mobi", title="Alpha")
    make_book("d/b.mobi", title="Beta", description="text")

    assert scan_library(tmp_path) == scan_library(tmp_path)


def test_ignored_names_and_macos_resource_files(tmp_path, make_book):
    make_book("book.mobi", title="Kept")
    make_book("._book.mobi", title="Resource fork")
    make_book(".Trashes/deleted.mobi", title="Trashed")

    library = scan_library(tmp_path)

    assert [b.title for b in library] == ["Kept"]


def test_configured_extensions(tmp_path, make_book):
    make_book("a.mobi", title="Mobi")
    make_book("b.prc", title="Prc")
    config = ScannerConfig(extensions=("prc",))

    assert [b.title for b in scan_library(tmp_path, config)] == ["Prc"]


def test_uppercase_extension_found(tmp_path, make_book):
    make_book("LOUD.MOBI", title="Loud")
    assert [b.title for b in scan_library(tmp_path)] == ["Loud"]
    assert len(scan_library(tmp_path, ScannerConfig(case_sensitive=True))) == 0


def test_custom_extractor_failures_are_isolated(tmp_path):
    for name in ("a.mobi", "b.mobi", "c.mobi"):
        (tmp_path / name).write_bytes(b"")

    def extractor(path):
        if path.name == "b.mobi":
            raise Unreadable(path, "boom")
        return BookRecord(title=path.stem, path=path)

    library = scan_library(tmp_path, extractor=extractor)
    assert [b.title for b in library] == ["a", "c"]


def test_walk_library_skips_ignored_folders(tmp_path):
    (tmp_path / "keep").mkdir()
    (tmp_path / "@eaDir").mkdir()
    (tmp_path / "keep" / "x.mobi").write_bytes(b"")

    walked = {d.name: [f.name for f in files] for d, files in walk_library(tmp_path, ("@eaDir",))}

    assert "@eaDir" not in walked
    assert walked["keep"] == ["x.mobi"]
