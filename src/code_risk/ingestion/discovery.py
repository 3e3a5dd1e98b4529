"""Candidate file selection for ingestion.

The include and exclude lists decide what the scanner and the entity
extractor ever see, so they are part of the pipeline contract.
"""

import os
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..config import config
from ..logging import get_logger


logger = get_logger(__name__)

DEFAULT_INCLUDE_PATTERNS = (
    '*.js', '*.jsx', '*.ts', '*.tsx', '*.py', '*.go', '*.rs', '*.java', '*.c', '*.cpp', '*.h',
)

EXCLUDED_DIRS = frozenset({
    'node_modules', 'vendor', '.git', 'dist', 'build', '__pycache__',
})

EXCLUDED_FILE_PATTERNS = (
    '*.min.js', '*.test.*', '*.spec.*', 'test_*.py', '*_test.py', '*_test.go',
)


def is_excluded_file(name: str, patterns: Sequence[str] = EXCLUDED_FILE_PATTERNS) -> bool:
    """Whether a file name matches one of the exclusion patterns."""
    return any(fnmatchcase(name, pattern) for pattern in patterns)


def discover_files(root: Union[str, Path], max_files: Optional[int] = None,
                   include_patterns: Sequence[str] = DEFAULT_INCLUDE_PATTERNS) -> List[Path]:
    """List candidate source files below ``root``.

    Files are grouped by include pattern, in pattern order, and sorted by
    relative path within each group. When more than ``max_files`` match,
    the first ``max_files`` discovered are kept. Symlinks are never
    followed.
    """
    root = Path(root)
    limit = max_files if max_files is not None else config.limits.max_files_per_repo
    matches: Dict[str, List[Path]] = {pattern: [] for pattern in include_patterns}

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in EXCLUDED_DIRS]
        for filename in filenames:
            if is_excluded_file(filename):
                continue
            path = Path(dirpath) / filename
            if path.is_symlink():
                continue
            for pattern in include_patterns:
                if fnmatchcase(filename, pattern):
                    matches[pattern].append(path)
                    break

    files: List[Path] = []
    for pattern in include_patterns:
        files.extend(sorted(matches[pattern], key=lambda p: p.relative_to(root).as_posix()))

    if len(files) > limit:
        logger.info("Limiting discovered files", found=len(files), limit=limit, root=str(root))
        files = files[:limit]

    return files
