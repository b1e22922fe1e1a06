"""
Asset manifest - assets.csv with path, size and content digest

Lists every asset file the scope depends on so an audit can tell later
whether a file changed. The hash function is injectable; MD5 hex is the
default to stay comparable with older snapshots.

Format:
    asset path;size in bytes;md5
    Assets/Textures/Body.png;20481;9e107d9d372bb6826bd81d3542a419d6

A ';' inside a path is written as '\\;'.
"""

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from ..config import Config
from ..core.host import CorpusHost, EntityKind
from ..core.scope import Scope, referenced_asset_paths, resolve_entities, resolve_nodes
from ..utils.path_utils import escape_csv_field, split_csv_line, write_text_atomic

logger = logging.getLogger(__name__)

Hasher = Callable[[bytes], str]


def md5_hex(data: bytes) -> str:
    """Default content hash"""
    return hashlib.md5(data).hexdigest()


@dataclass
class AssetRow:
    """One assets.csv row"""
    path: str
    size: int
    digest: str


def collect_asset_paths(host: CorpusHost, scope: Scope) -> List[str]:
    """
    Asset paths the scope depends on, sorted.

    Node scopes collect material and texture assets, asset references of
    materials and behaviors, and host-declared dependencies of the nodes.
    EntireCorpus collects every indexed material and texture.
    """
    paths: Set[str] = set()

    def add_entity(handle, identity: Optional[str]):
        if identity:
            paths.add(identity)
        paths.update(referenced_asset_paths(host, handle))
        paths.update(host.asset_dependencies(handle))

    for kind in (EntityKind.MATERIAL, EntityKind.TEXTURE, EntityKind.BEHAVIOR):
        for item in resolve_entities(host, kind, scope):
            # Behavior identities are not asset paths
            identity = item.identity if kind is not EntityKind.BEHAVIOR else None
            add_entity(item.handle, identity)

    if scope.is_node_scope:
        for node in resolve_nodes(host, scope):
            paths.update(host.asset_dependencies(node))

    return sorted(p for p in paths if p)


def build_rows(host: CorpusHost, paths: Iterable[str], hasher: Hasher = md5_hex) -> List[AssetRow]:
    """Size and hash every path that maps to an existing file"""
    rows: List[AssetRow] = []
    for asset_path in paths:
        file_path = host.asset_file_path(asset_path)
        if file_path is None or not Path(file_path).is_file():
            logger.debug(f"No file for asset {asset_path}, not listed")
            continue
        try:
            data = Path(file_path).read_bytes()
        except OSError as e:
            logger.warning(f"Cannot read asset {asset_path}: {e}")
            continue
        rows.append(AssetRow(asset_path, len(data), hasher(data)))
    return rows


def format_asset_manifest(rows: Iterable[AssetRow]) -> str:
    lines = [Config.ASSETS_CSV_HEADER]
    for row in rows:
        lines.append(f"{escape_csv_field(row.path)};{row.size};{row.digest}")
    return "\n".join(lines) + "\n"


def write_asset_manifest(
    host: CorpusHost,
    scope: Scope,
    output_path: Path,
    hasher: Hasher = md5_hex,
) -> int:
    """
    Collect, hash and write assets.csv.

    Returns:
        Number of rows written
    """
    rows = build_rows(host, collect_asset_paths(host, scope), hasher)
    write_text_atomic(output_path, format_asset_manifest(rows))
    return len(rows)


def read_asset_manifest(path: Path) -> List[AssetRow]:
    """
    Parse assets.csv.

    Malformed lines are logged and skipped; the header is optional.
    """
    rows: List[AssetRow] = []
    with open(path, 'r', encoding='utf-8-sig') as f:
        for line_no, line in enumerate(f, start=1):
            line = line.rstrip('\r\n')
            if not line or (line_no == 1 and line == Config.ASSETS_CSV_HEADER):
                continue
            fields = split_csv_line(line)
            if len(fields) != 3:
                logger.warning(f"{path.name}:{line_no}: expected 3 fields, got {len(fields)}")
                continue
            try:
                rows.append(AssetRow(fields[0], int(fields[1]), fields[2]))
            except ValueError:
                logger.warning(f"{path.name}:{line_no}: bad size {fields[1]!r}")
    return rows


__all__ = [
    'AssetRow',
    'Hasher',
    'md5_hex',
    'collect_asset_paths',
    'build_rows',
    'format_asset_manifest',
    'write_asset_manifest',
    'read_asset_manifest',
]
