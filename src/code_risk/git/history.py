"""Git history analysis: ownership, knowledge silos and bus factor."""

import math
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import PurePosixPath
from typing import Dict, List, Tuple

from ..core.constants import (
    COMMIT_HEADER_PREFIX, CRITICAL_FILE_MIN_SCORE, MAX_CRITICAL_FILES,
    SECONDARY_OWNER_THRESHOLD, SILO_HIGH_RISK_FILES, SILO_MIN_FILES, SINGLE_OWNER_THRESHOLD
)
from ..logging import get_logger
from .models import (
    AuthorOwnership, AuthorStats, BusFactorRiskLevel, CommitRecord, CriticalFile,
    FileOwnership, GitHistoryReport, KnowledgeSilo
)


logger = get_logger(__name__)

CODE_EXTENSIONS = frozenset({
    '.js', '.ts', '.jsx', '.tsx',
    '.py', '.rb', '.go', '.rs',
    '.java', '.kt', '.scala',
    '.c', '.cpp', '.h', '.hpp',
    '.php', '.swift', '.m', '.mm',
})

ROOT_AREA = "root"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positive values (``round`` uses banker's rounding)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def is_code_file(path: str) -> bool:
    """Whether ``path`` counts toward ownership and bus factor."""
    return PurePosixPath(path).suffix.lower() in CODE_EXTENSIONS


def classify_bus_factor(score: float) -> BusFactorRiskLevel:
    """Map a bus factor score to a risk level."""
    if score <= 1.5:
        return BusFactorRiskLevel.CRITICAL
    if score <= 2.5:
        return BusFactorRiskLevel.HIGH
    if score <= 4:
        return BusFactorRiskLevel.MEDIUM
    return BusFactorRiskLevel.LOW


class GitHistoryAnalyzer:
    """Replays a commit log produced with ``GIT_LOG_FORMAT`` and ``--name-only``.

    The analyzer only sees log text; obtaining that text is the job of
    ``GitCloner.read_commit_log``. Commit records live for the duration of
    one ``analyze`` call and are never persisted.
    """

    def analyze(self, log_text: str) -> GitHistoryReport:
        """Analyze a commit log; failures produce a degraded report instead of raising."""
        try:
            commits = self.parse_log(log_text)
            ownership = self.file_ownership(commits)
            authors = self.author_stats(commits)
            score, risk_level, single_owner_percentage = self.bus_factor(ownership)

            report = GitHistoryReport(
                bus_factor=score,
                risk_level=risk_level,
                total_commits=len(commits),
                unique_authors=len(authors),
                single_owner_percentage=single_owner_percentage,
                file_ownership=ownership,
                author_stats=authors,
                critical_files=self.critical_files(ownership),
                knowledge_silos=self.knowledge_silos(ownership),
            )
        except Exception as e:
            logger.error("Git history analysis failed", error=str(e))
            return GitHistoryReport(
                bus_factor=0,
                risk_level=BusFactorRiskLevel.UNKNOWN,
                error=str(e)
            )

        logger.info(
            "Git history analyzed",
            commits=report.total_commits,
            authors=report.unique_authors,
            bus_factor=report.bus_factor,
            risk_level=report.risk_level.value
        )
        return report

    def parse_log(self, log_text: str) -> List[CommitRecord]:
        """Split log text into commit records.

        Each record is a ``COMMIT|hash|author|email|timestamp`` header
        followed by the paths it touched, up to the next header.
        """
        commits: List[CommitRecord] = []
        current = None

        for line in log_text.split('\n'):
            if line.startswith(COMMIT_HEADER_PREFIX):
                if current is not None:
                    commits.append(current)
                current = self._parse_header(line)
            elif line.strip() and current is not None:
                current.files.append(line.strip())

        if current is not None:
            commits.append(current)

        return commits

    def _parse_header(self, line: str) -> CommitRecord:
        parts = line.rstrip('\r').split('|')
        if len(parts) < 5:
            raise ValueError(f"Malformed commit header: {line!r}")

        # Author names may themselves contain the separator.
        return CommitRecord(
            hash=parts[1],
            author='|'.join(parts[2:-2]),
            email=parts[-2],
            timestamp=datetime.fromtimestamp(int(parts[-1]), tz=timezone.utc),
        )

    def file_ownership(self, commits: List[CommitRecord]) -> Dict[str, FileOwnership]:
        """Tally commits per author for every code file."""
        file_authors: Dict[str, Dict[str, int]] = {}

        for commit in commits:
            for path in commit.files:
                if not is_code_file(path):
                    continue
                counts = file_authors.setdefault(path, {})
                counts[commit.author] = counts.get(commit.author, 0) + 1

        ownership = {}
        for path, counts in file_authors.items():
            total = sum(counts.values())
            # sorted() is stable: ties keep first-seen author order
            ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
            authors = [
                AuthorOwnership(
                    author=author,
                    commits=count,
                    percentage=int(round_half_up(count / total * 100))
                )
                for author, count in ranked
            ]
            ownership[path] = FileOwnership(
                file_path=path,
                primary_author=authors[0].author,
                primary_percentage=authors[0].percentage,
                total_commits=total,
                authors=authors,
            )

        return ownership

    def author_stats(self, commits: List[CommitRecord]) -> Dict[str, AuthorStats]:
        """Per-author commit count, distinct files touched and activity window."""
        stats: Dict[str, AuthorStats] = {}
        touched: Dict[str, set] = defaultdict(set)

        for commit in commits:
            entry = stats.get(commit.author)
            if entry is None:
                entry = stats[commit.author] = AuthorStats(
                    author=commit.author,
                    email=commit.email,
                    first_commit=commit.timestamp,
                    last_commit=commit.timestamp,
                )
            entry.commits += 1
            touched[commit.author].update(commit.files)
            entry.first_commit = min(entry.first_commit, commit.timestamp)
            entry.last_commit = max(entry.last_commit, commit.timestamp)

        for author, entry in stats.items():
            entry.files_touched = len(touched[author])

        return stats

    def bus_factor(self, ownership: Dict[str, FileOwnership]) -> Tuple[float, BusFactorRiskLevel, int]:
        """Return ``(score, risk_level, single_owner_percentage)``.

        Authors are taken greedily by number of files they are primary owner
        of until half the code files are covered. When coverage ends below
        60% a fractional ``(0.5 - (coverage - 0.5)) * 2`` is added.
        """
        files = list(ownership.values())
        total_files = len(files)
        if total_files == 0:
            return 0.0, BusFactorRiskLevel.UNKNOWN, 0

        single_owner = sum(1 for f in files if f.primary_percentage >= SINGLE_OWNER_THRESHOLD)
        single_owner_percentage = int(round_half_up(single_owner / total_files * 100))

        owned: Dict[str, int] = {}
        for f in files:
            owned[f.primary_author] = owned.get(f.primary_author, 0) + 1
        ranked = sorted(owned.values(), reverse=True)

        covered = 0
        score = 0.0
        for count in ranked:
            covered += count
            score += 1
            if covered >= total_files * 0.5:
                break

        coverage = covered / total_files
        if coverage < 0.6:
            score += (0.5 - (coverage - 0.5)) * 2

        score = max(0.0, round_half_up(score, 1))
        return score, classify_bus_factor(score), single_owner_percentage

    def knowledge_silos(self, ownership: Dict[str, FileOwnership]) -> List[KnowledgeSilo]:
        """Group single-owner files by (author, top-level directory)."""
        areas: Dict[Tuple[str, str], List[int]] = {}

        for path, data in ownership.items():
            if data.primary_percentage < SINGLE_OWNER_THRESHOLD:
                continue
            parts = PurePosixPath(path).parts
            area = parts[0] if len(parts) > 1 else ROOT_AREA
            tally = areas.setdefault((data.primary_author, area), [0, 0])
            tally[0] += 1
            tally[1] += data.total_commits

        silos = [
            KnowledgeSilo(
                owner=owner,
                area=area,
                files=files,
                commits=commits,
                risk=BusFactorRiskLevel.HIGH if files > SILO_HIGH_RISK_FILES else BusFactorRiskLevel.MEDIUM
            )
            for (owner, area), (files, commits) in areas.items()
            if files >= SILO_MIN_FILES
        ]
        return sorted(silos, key=lambda s: s.files, reverse=True)

    def critical_files(self, ownership: Dict[str, FileOwnership]) -> List[CriticalFile]:
        """Busy files that effectively have a single owner and no backup."""
        critical = []

        for path, data in ownership.items():
            if len(data.authors) > 1 and data.authors[1].percentage > SECONDARY_OWNER_THRESHOLD:
                continue

            score = data.total_commits * (data.primary_percentage / 100)
            if score < CRITICAL_FILE_MIN_SCORE or data.primary_percentage < SINGLE_OWNER_THRESHOLD:
                continue

            if score > 30:
                risk = BusFactorRiskLevel.CRITICAL
            elif score > 15:
                risk = BusFactorRiskLevel.HIGH
            else:
                risk = BusFactorRiskLevel.MEDIUM

            critical.append(CriticalFile(
                file_path=path,
                owner=data.primary_author,
                commits=data.total_commits,
                ownership_percentage=data.primary_percentage,
                risk=risk,
            ))

        critical.sort(key=lambda c: c.commits, reverse=True)
        return critical[:MAX_CRITICAL_FILES]
