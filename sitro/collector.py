"""Collect numbered PNG files written by a backend into page order."""

from __future__ import annotations

import os
from pathlib import Path
import re
from re import Pattern

from .document import RenderedDocument
from .errors import OutputContractError


# Output naming used by the in-container entrypoint.
CONTAINER_OUTPUT_PATTERN = r"out-(\d+)\.png"


def _compile(pattern: str | Pattern[str]) -> Pattern[str]:
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    if compiled.groups != 1:
        raise ValueError(
            f"Output pattern {compiled.pattern!r} must have exactly one capture group"
        )
    return compiled


def numbered_files(
    directory: str | os.PathLike[str], pattern: str | Pattern[str]
) -> list[tuple[int, Path]]:
    """Return ``(page_number, path)`` pairs matching ``pattern``, sorted by number.

    Files whose name does not fully match the pattern are ignored: a
    workspace also holds the input PDF and possibly intermediate files.

    Raises:
        OutputContractError: If the directory cannot be listed or two files
            carry the same page number.
    """
    compiled = _compile(pattern)
    root = Path(directory)
    try:
        entries = list(os.scandir(root))
    except OSError as exc:
        raise OutputContractError(f"Failed to read output directory {root}: {exc}") from exc

    found: dict[int, Path] = {}
    for entry in entries:
        if not entry.is_file():
            continue
        match = compiled.fullmatch(entry.name)
        if match is None:
            continue
        number = int(match.group(1))
        if number in found:
            raise OutputContractError(
                f"Duplicate output for page {number}: {found[number].name} and {entry.name}"
            )
        found[number] = Path(entry.path)
    return sorted(found.items())


def collect(directory: str | os.PathLike[str], pattern: str | Pattern[str]) -> RenderedDocument:
    """Read every numbered output file in ``directory`` in page order.

    Args:
        directory: Directory the backend wrote into.
        pattern: Regex with one integer capture group holding the 1-based
            page number, e.g. ``out-(\\d+)\\.png``.

    Returns:
        The raw bytes of each matched file, ordered by page number.

    Raises:
        OutputContractError: If the directory cannot be listed, a file
            cannot be read, no file matched, or the page numbers do not run
            contiguously from 1.
    """
    files = numbered_files(directory, pattern)
    if not files:
        raise OutputContractError(
            f"No output files matching {_compile(pattern).pattern!r} in {directory}"
        )
    for expected, (number, path) in enumerate(files, start=1):
        if number != expected:
            raise OutputContractError(
                f"Missing output for page {expected} in {directory} (next file is {path.name})"
            )
    pages: RenderedDocument = []
    for _, path in files:
        try:
            pages.append(path.read_bytes())
        except OSError as exc:
            raise OutputContractError(f"Failed to read output file {path}: {exc}") from exc
    return pages


__all__ = ["CONTAINER_OUTPUT_PATTERN", "collect", "numbered_files"]
