"""
Path utilities for Scene Snapshot

Node paths, snapshot folder names, atomic file writes and the escaping
used in assets.csv.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, Union

NODE_PATH_SEPARATOR = '/'
CSV_SEPARATOR = ';'

_ILLEGAL_LABEL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def join_node_path(names: Iterable[str]) -> str:
    """Slash-join ancestor names into a node path"""
    return NODE_PATH_SEPARATOR.join(names)


def parent_node_path(path: str) -> str:
    """Parent of a node path ("" for a root)"""
    if NODE_PATH_SEPARATOR not in path:
        return ""
    return path.rsplit(NODE_PATH_SEPARATOR, 1)[0]


def sanitize_label(label: str) -> str:
    """
    Make a user label safe for use in a folder name.

    Illegal filename characters become underscores, surrounding dots and
    whitespace are dropped.
    """
    if not label:
        return ""
    cleaned = _ILLEGAL_LABEL_CHARS.sub('_', label)
    return cleaned.strip().strip('.')


def unique_path(parent: Path, name: str, suffix: str = "") -> Path:
    """
    First non-existing path for a name.

    name, name_1, name_2, ... (suffix appended after the counter)
    """
    candidate = parent / f"{name}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = parent / f"{name}_{counter}{suffix}"
        counter += 1
    return candidate


def write_text_atomic(path: Union[str, Path], text: str) -> Path:
    """
    Write a text file via temp file + rename.

    Readers never see a half-written file: either the old content (or no
    file) or the complete new content.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return path


def escape_csv_field(value: str) -> str:
    """Escape backslashes as \\\\ and the field separator as \\;"""
    return value.replace('\\', '\\\\').replace(CSV_SEPARATOR, '\\' + CSV_SEPARATOR)


def split_csv_line(line: str) -> list:
    """Split an assets.csv line on unescaped separators and unescape fields"""
    fields = []
    current = []
    i = 0
    while i < len(line):
        char = line[i]
        if char == '\\' and i + 1 < len(line) and line[i + 1] in (CSV_SEPARATOR, '\\'):
            current.append(line[i + 1])
            i += 2
            continue
        if char == CSV_SEPARATOR:
            fields.append(''.join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append(''.join(current))
    return fields


__all__ = [
    'NODE_PATH_SEPARATOR',
    'join_node_path',
    'parent_node_path',
    'sanitize_label',
    'unique_path',
    'write_text_atomic',
    'escape_csv_field',
    'split_csv_line',
]
