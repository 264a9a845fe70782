"""Plain-text rendering of the session phase for the CLI."""

from __future__ import annotations

from .models import AwaitingDevice, BookRecord, DeviceFound, Library, Phase, Ready


def render_library(library: Library) -> list[str]:
    if not len(library):
        return ["No books found on the device."]
    lines = []
    for number, book in enumerate(library, start=1):
        author = f" - {book.author}" if book.author else ""
        info = " [has info]" if book.description else ""
        lines.append(f"{number:>3}. {book.title}{author}{info}")
    return lines


def render_book(book: BookRecord) -> list[str]:
    return [
        book.title,
        f"  Author:      {book.author or 'Unknown'}",
        f"  ISBN:        {book.identifier or 'No ISBN provided'}",
        f"  Description: {book.description or 'No description provided'}",
    ]


def render(phase: Phase) -> str:
    if isinstance(phase, AwaitingDevice):
        return "Please, connect your Kindle device"
    if isinstance(phase, DeviceFound):
        return "Connected to device. Reading books..."
    if isinstance(phase, Ready):
        lines = render_library(phase.library)
        if phase.selection is not None:
            lines.append("")
            lines.extend(render_book(phase.selection))
        return "\n".join(lines)
    raise TypeError(f"Unknown phase: {phase!r}")
