"""
Source file discovery.

Walks the scan directories and yields the PHP files to extract from, leaving
out excluded directory names (``Tests``, ``vendor``...) and file name globs
(``*Test.php``).
"""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('.php',)


def _matches_any(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def find_source_files(
    scan_dirs: Iterable[str],
    excluded_dirs: Sequence[str] = (),
    excluded_names: Sequence[str] = (),
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> Iterator[Path]:
    """Yield matching files in a stable (sorted) order, each at most once."""
    extensions = tuple(e.lower() for e in extensions)
    seen = set()

    for scan_dir in scan_dirs:
        root = Path(scan_dir)
        if root.is_file():
            candidates: List[Path] = [root]
        elif root.is_dir():
            candidates = list(_walk(root, excluded_dirs))
        else:
            logger.warning(f"Scan directory not found: {scan_dir}")
            continue

        for path in candidates:
            if not path.name.lower().endswith(extensions):
                continue
            if _matches_any(path.name, excluded_names):
                logger.debug(f"Excluded by name: {path}")
                continue
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            yield path


def _walk(root: Path, excluded_dirs: Sequence[str]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        # prune in place so os.walk does not descend
        dirnames[:] = sorted(d for d in dirnames if not _matches_any(d, excluded_dirs))
        for filename in sorted(filenames):
            yield Path(dirpath) / filename
