"""Clone management and commit log access via GitPython."""

import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import Optional, Union

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from ..config import config
from ..core.constants import GIT_LOG_FORMAT
from ..exceptions import CloneError, RepositoryError, RepositoryNotFoundError, RepositoryTooLargeError
from ..logging import get_logger


logger = get_logger(__name__)

_NOT_FOUND_MARKERS = ("not found", "does not exist", "could not read username", "repository not found")
_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')

PathLike = Union[str, Path]


class GitCloner:
    """Shallow, single-branch clones into per-run working directories.

    Every call to ``prepare_destination`` creates a fresh directory named
    ``<owner>-<name>-<random>`` under the clone root, so two runs for the
    same repository never share a checkout. Callers own the directory and
    must hand it back to ``cleanup`` on every exit path.
    """

    def __init__(self, clone_dir: Optional[PathLike] = None, depth: Optional[int] = None,
                 max_repo_size_mb: Optional[int] = None, max_clone_age_seconds: Optional[int] = None):
        """Initialize with clone root and limits; defaults come from configuration."""
        self.clone_dir = Path(clone_dir) if clone_dir is not None else config.git.clone_dir
        self.depth = depth if depth is not None else config.git.clone_depth
        self.max_repo_size_mb = max_repo_size_mb or config.limits.max_repo_size_mb
        self.max_clone_age_seconds = max_clone_age_seconds or config.limits.max_clone_age_seconds

    def prepare_destination(self, owner: str, name: str) -> Path:
        """Create a unique, empty directory for one clone."""
        self.clone_dir.mkdir(parents=True, exist_ok=True)
        prefix = f"{_UNSAFE_CHARS.sub('_', owner)}-{_UNSAFE_CHARS.sub('_', name)}-"
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self.clone_dir))

    def clone_into(self, url: str, destination: PathLike, branch: Optional[str] = None) -> Path:
        """Clone ``url`` into ``destination`` (blocking)."""
        destination = Path(destination)
        kwargs = {'single_branch': True}
        if self.depth:
            kwargs['depth'] = self.depth
        if branch:
            kwargs['branch'] = branch

        logger.info("Cloning repository", url=url, destination=str(destination), branch=branch)
        try:
            Repo.clone_from(url, str(destination), **kwargs)
        except GitCommandError as e:
            message = str(e.stderr or e).lower()
            if any(marker in message for marker in _NOT_FOUND_MARKERS):
                raise RepositoryNotFoundError(f"Repository not found: {url}", cause=e)
            raise CloneError.from_exception(f"Failed to clone repository {url}", e, {"branch": branch})

        logger.info("Repository cloned", url=url, destination=str(destination))
        return destination

    def tree_size_bytes(self, path: PathLike) -> int:
        """Total size of the working tree, not counting ``.git``."""
        total = 0
        for root, dirs, files in os.walk(path):
            if '.git' in dirs:
                dirs.remove('.git')
            for file in files:
                try:
                    total += os.lstat(os.path.join(root, file)).st_size
                except OSError:
                    continue
        return total

    def check_size(self, path: PathLike) -> int:
        """Raise ``RepositoryTooLargeError`` when the tree exceeds the size limit."""
        size = self.tree_size_bytes(path)
        limit = self.max_repo_size_mb * 1024 * 1024
        if size > limit:
            raise RepositoryTooLargeError(
                "Repository exceeds maximum size",
                {"size_bytes": size, "limit_bytes": limit}
            )
        return size

    def read_commit_log(self, path: PathLike) -> str:
        """Raw ``git log --all --name-only`` text in ``GIT_LOG_FORMAT``."""
        try:
            repo = Repo(str(path))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepositoryNotFoundError(f"Not a git repository: {path}", cause=e)

        try:
            return repo.git.log('--all', f'--format={GIT_LOG_FORMAT}', '--name-only')
        except GitCommandError as e:
            raise RepositoryError.from_exception(f"Failed to read commit log for {path}", e)
        finally:
            repo.close()

    def cleanup(self, path: Optional[PathLike]) -> None:
        """Remove a clone directory; missing directories are ignored."""
        if path is None:
            return
        path = Path(path)
        if not path.exists():
            return
        shutil.rmtree(path, ignore_errors=True)
        logger.debug("Removed clone directory", path=str(path))

    def cleanup_stale(self, max_age_seconds: Optional[int] = None) -> int:
        """Remove clone directories older than ``max_age_seconds``; returns how many."""
        max_age = max_age_seconds if max_age_seconds is not None else self.max_clone_age_seconds
        if not self.clone_dir.exists():
            return 0

        cutoff = time.time() - max_age
        removed = 0
        for entry in self.clone_dir.iterdir():
            if not entry.is_dir():
                continue
            try:
                if entry.stat().st_mtime >= cutoff:
                    continue
            except OSError:
                continue
            shutil.rmtree(entry, ignore_errors=True)
            removed += 1

        if removed:
            logger.info("Removed stale clone directories", count=removed, clone_dir=str(self.clone_dir))
        return removed
