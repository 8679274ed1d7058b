"""Packing of a source directory into a zip archive for upload.

Files are selected by comma separated shell patterns: plain patterns include,
patterns starting with ``!`` exclude. Patterns match file names only; ``*``
and ``?`` never match ``/`` and ``[^...]`` negates a character class.
"""

from __future__ import annotations

import os
import re
import sys
import tempfile
import zipfile
from collections.abc import Sequence
from typing import TextIO


def _class_char(pattern: str, index: int) -> tuple[str, int] | None:
    if index >= len(pattern) or pattern[index] in "-]":
        return None
    if pattern[index] == "\\":
        index += 1
        if index >= len(pattern):
            return None
    return pattern[index], index + 1


def _translate_class(pattern: str, index: int) -> tuple[str, int] | None:
    negated = index < len(pattern) and pattern[index] == "^"
    if negated:
        index += 1
    ranges: list[tuple[str, str]] = []
    while True:
        if index < len(pattern) and pattern[index] == "]" and ranges:
            index += 1
            break
        low = _class_char(pattern, index)
        if low is None:
            return None
        low_char, index = low
        high_char = low_char
        if index < len(pattern) and pattern[index] == "-":
            high = _class_char(pattern, index + 1)
            if high is None:
                return None
            high_char, index = high
        ranges.append((low_char, high_char))
    items = "".join(
        f"{re.escape(low)}-{re.escape(high)}" for low, high in ranges if low <= high
    )
    if not items:
        return (r"[\s\S]" if negated else "(?!)"), index
    return f"[{'^' if negated else ''}{items}]", index


def _translate(pattern: str) -> re.Pattern[str] | None:
    parts: list[str] = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "*":
            parts.append("[^/]*")
            index += 1
        elif char == "?":
            parts.append("[^/]")
            index += 1
        elif char == "\\":
            if index + 1 >= len(pattern):
                return None
            parts.append(re.escape(pattern[index + 1]))
            index += 2
        elif char == "[":
            translated = _translate_class(pattern, index + 1)
            if translated is None:
                return None
            regex, index = translated
            parts.append(regex)
        else:
            parts.append(re.escape(char))
            index += 1
    return re.compile("".join(parts), re.DOTALL)


def _path_match(pattern: str, name: str) -> bool:
    regex = _translate(pattern)
    return regex is not None and regex.fullmatch(name) is not None


def filter_matched(filters: Sequence[str], file_name: str) -> tuple[bool, bool]:
    """Return ``(matched, excluded)`` for ``file_name``.

    Without inclusion patterns every file is matched; with some, the file must
    match one of them. Matching any exclusion pattern excludes it.
    """
    matched = True
    has_inclusion = False
    excluded = False
    for pattern in filters:
        if pattern.startswith("!"):
            if not excluded:
                excluded = _path_match(pattern[1:], file_name)
        else:
            if not has_inclusion:
                matched = False
                has_inclusion = True
            if not matched:
                matched = _path_match(pattern, file_name)
    return matched, excluded


def _add_dir_files(
    archive: zipfile.ZipFile,
    base_dir: str,
    parent_dir: str,
    filters: Sequence[str] | None,
    stream: TextIO,
) -> None:
    try:
        with os.scandir(parent_dir) as listing:
            entries = sorted(listing, key=lambda entry: entry.name)
    except OSError as exc:
        stream.write(f"{exc}\n")
        return
    for entry in entries:
        file_name = parent_dir + entry.name
        if entry.is_dir(follow_symlinks=False):
            stream.write(f"Directory:  {file_name}\n")
            _add_dir_files(
                archive, base_dir + entry.name + "/", file_name + "/", filters, stream
            )
            continue
        matched, excluded = (True, False) if filters is None else filter_matched(filters, entry.name)
        if not matched or excluded:
            stream.write(f"Excluded:  {file_name}\n")
            continue
        stream.write(f"Included:  {file_name}\n")
        try:
            with open(file_name, "rb") as source:
                data = source.read()
        except OSError as exc:
            stream.write(f"{exc}\n")
            data = b""
        archive.writestr(base_dir + entry.name, data)


def compress_folder(source_dir: str, file_filter: str, stream: TextIO | None = None) -> str:
    """Zip the files of ``source_dir`` that pass ``file_filter``; return the archive path."""
    out = stream if stream is not None else sys.stdout
    filters = file_filter.split(",") if file_filter else None
    handle, archive_path = tempfile.mkstemp(prefix="cx-", suffix=".zip")
    directory = str(source_dir) + "/"
    with os.fdopen(handle, "wb") as raw, zipfile.ZipFile(raw, "w", zipfile.ZIP_DEFLATED) as archive:
        _add_dir_files(archive, "/", directory, filters, out)
        out.write(f"Zipped File: {archive_path}\n")
        out.write(f"source DIR:  {directory}\n")
        out.write(f"GLOB pattr {file_filter}\n")
    return archive_path