"""Tests for git history analysis and bus factor scoring."""

from datetime import datetime, timezone

import pytest

from code_risk.exceptions import RepositoryNotFoundError
from code_risk.git.history import (
    ROOT_AREA, GitHistoryAnalyzer, classify_bus_factor, is_code_file, round_half_up
)
from code_risk.git.models import BusFactorRiskLevel


@pytest.fixture
def analyzer():
    """History analyzer."""
    return GitHistoryAnalyzer()


def one_file_per_commit(author, paths):
    return [(author, [path]) for path in paths]


class TestHelpers:
    """Test module-level helpers."""

    def test_round_half_up(self):
        """Halves round up, unlike the built-in round."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(12.5) == 13
        assert round_half_up(2.25, 1) == 2.3
        assert round_half_up(66.4) == 66

    @pytest.mark.parametrize("score,level", [
        (0.0, BusFactorRiskLevel.CRITICAL),
        (1.5, BusFactorRiskLevel.CRITICAL),
        (1.6, BusFactorRiskLevel.HIGH),
        (2.5, BusFactorRiskLevel.HIGH),
        (2.6, BusFactorRiskLevel.MEDIUM),
        (4.0, BusFactorRiskLevel.MEDIUM),
        (4.1, BusFactorRiskLevel.LOW),
    ])
    def test_classify_bus_factor(self, score, level):
        """Test risk level boundaries."""
        assert classify_bus_factor(score) == level

    def test_is_code_file(self):
        """Only recognized code extensions count."""
        assert is_code_file("src/app.ts")
        assert is_code_file("Main.KT")
        assert not is_code_file("README.md")
        assert not is_code_file("package.json")


class TestParseLog:
    """Test commit log parsing."""

    def test_parse_records(self, analyzer, commit_log):
        """Headers start records and following lines are touched paths."""
        text = commit_log([
            ("Alice", ["src/a.py", "src/b.py"]),
            ("Bob", ["docs/readme.md"]),
        ])

        commits = analyzer.parse_log(text)

        assert [c.author for c in commits] == ["Alice", "Bob"]
        assert commits[0].files == ["src/a.py", "src/b.py"]
        assert commits[0].email == "alice@example.com"
        assert commits[0].timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert commits[1].files == ["docs/readme.md"]

    def test_author_containing_separator(self, analyzer):
        """The author field may itself contain '|'."""
        commits = analyzer.parse_log("COMMIT|abc123|Ann|Lee|ann@example.com|1700000000\nsrc/x.py\n")

        assert commits[0].author == "Ann|Lee"
        assert commits[0].email == "ann@example.com"

    def test_lines_before_first_header_are_ignored(self, analyzer):
        """Stray paths without a header do not belong to any commit."""
        commits = analyzer.parse_log("orphan.py\nCOMMIT|h|A|a@x|1700000000\nsrc/x.py\n")

        assert len(commits) == 1
        assert commits[0].files == ["src/x.py"]

    def test_empty_log(self, analyzer):
        """An empty log has no commits."""
        assert analyzer.parse_log("") == []


class TestOwnership:
    """Test per-file ownership and author statistics."""

    def test_percentages(self, analyzer, commit_log):
        """Commit shares are rounded half up to whole percentages."""
        text = commit_log(
            one_file_per_commit("Alice", ["x.py"] * 3)
            + one_file_per_commit("Bob", ["x.py"])
            + one_file_per_commit("Alice", ["y.py"] * 2)
            + one_file_per_commit("Bob", ["y.py"])
        )

        ownership = analyzer.file_ownership(analyzer.parse_log(text))

        assert ownership["x.py"].primary_author == "Alice"
        assert [(a.author, a.percentage) for a in ownership["x.py"].authors] == [("Alice", 75), ("Bob", 25)]
        assert [a.percentage for a in ownership["y.py"].authors] == [67, 33]
        assert ownership["y.py"].total_commits == 3

    def test_ties_keep_first_seen_author(self, analyzer, commit_log):
        """Equal commit counts keep encounter order."""
        text = commit_log([("Bob", ["x.py"]), ("Alice", ["x.py"])])

        ownership = analyzer.file_ownership(analyzer.parse_log(text))

        assert ownership["x.py"].primary_author == "Bob"
        assert ownership["x.py"].primary_percentage == 50

    def test_non_code_files_are_ignored(self, analyzer, commit_log):
        """Docs and config files do not affect ownership."""
        text = commit_log([("Alice", ["README.md", "package.json", "src/app.js"])])

        ownership = analyzer.file_ownership(analyzer.parse_log(text))

        assert list(ownership) == ["src/app.js"]

    def test_author_stats(self, analyzer, commit_log):
        """Commits, distinct files and activity window per author."""
        text = commit_log([
            ("Alice", ["a.py", "README.md"]),
            ("Bob", ["b.py"]),
            ("Alice", ["a.py"]),
        ])

        stats = analyzer.author_stats(analyzer.parse_log(text))

        assert stats["Alice"].commits == 2
        assert stats["Alice"].files_touched == 2
        assert stats["Alice"].first_commit < stats["Alice"].last_commit
        assert stats["Bob"].commits == 1


class TestBusFactor:
    """Test the bus factor score."""

    def test_single_author(self, analyzer, commit_log):
        """One author owning everything is critical."""
        report = analyzer.analyze(commit_log([("Alice", ["a.py", "b.py", "c.py"])]))

        assert report.bus_factor == 1.0
        assert report.risk_level == BusFactorRiskLevel.CRITICAL
        assert report.total_commits == 1
        assert report.unique_authors == 1
        assert report.single_owner_percentage == 100

    def test_dominant_author(self, analyzer, commit_log):
        """80 files by A and 20 by B: A alone covers half the code."""
        text = commit_log(
            one_file_per_commit("A", [f"core/{i}.py" for i in range(80)])
            + one_file_per_commit("B", [f"web/{i}.js" for i in range(20)])
        )

        report = analyzer.analyze(text)

        assert report.bus_factor == 1.0
        assert report.risk_level == BusFactorRiskLevel.CRITICAL
        assert report.total_commits == 100
        assert report.unique_authors == 2

    def test_even_split_between_four(self, analyzer, commit_log):
        """Coverage stopping exactly at 50% adds a full point."""
        text = commit_log([(author, [f"{author.lower()}.py"]) for author in ("A", "B", "C", "D")])

        report = analyzer.analyze(text)

        assert report.bus_factor == 3.0
        assert report.risk_level == BusFactorRiskLevel.MEDIUM

    def test_even_split_between_two(self, analyzer, commit_log):
        """Two authors with two files each."""
        text = commit_log(
            one_file_per_commit("A", ["a1.py", "a2.py"]) + one_file_per_commit("B", ["b1.py", "b2.py"])
        )

        report = analyzer.analyze(text)

        assert report.bus_factor == 2.0
        assert report.risk_level == BusFactorRiskLevel.HIGH

    def test_fractional_adjustment(self, analyzer, commit_log):
        """Coverage of 55% adds 0.9."""
        text = commit_log(
            one_file_per_commit("A", [f"a{i}.py" for i in range(11)])
            + one_file_per_commit("B", [f"b{i}.py" for i in range(9)])
        )

        report = analyzer.analyze(text)

        assert report.bus_factor == 1.9
        assert report.risk_level == BusFactorRiskLevel.HIGH

    def test_no_adjustment_at_sixty_percent(self, analyzer, commit_log):
        """Coverage of 60% or more keeps the integer score."""
        text = commit_log(
            one_file_per_commit("A", [f"a{i}.py" for i in range(3)])
            + one_file_per_commit("B", [f"b{i}.py" for i in range(3)])
            + one_file_per_commit("C", [f"c{i}.py" for i in range(2)])
            + one_file_per_commit("D", [f"d{i}.py" for i in range(2)])
        )

        assert analyzer.analyze(text).bus_factor == 2.0

    def test_many_authors_is_low_risk(self, analyzer, commit_log):
        """Ten authors with one file each."""
        text = commit_log([(f"dev{i}", [f"f{i}.py"]) for i in range(10)])

        report = analyzer.analyze(text)

        assert report.bus_factor == 6.0
        assert report.risk_level == BusFactorRiskLevel.LOW

    def test_no_code_files(self, analyzer, commit_log):
        """Without code files the score is 0 and the level UNKNOWN."""
        report = analyzer.analyze(commit_log([("Alice", ["README.md"])]))

        assert report.bus_factor == 0
        assert report.risk_level == BusFactorRiskLevel.UNKNOWN
        assert not report.degraded

    def test_empty_log(self, analyzer):
        """An empty history is not an error."""
        report = analyzer.analyze("")

        assert report.total_commits == 0
        assert report.risk_level == BusFactorRiskLevel.UNKNOWN
        assert report.error is None


class TestDegradedReports:
    """Test failures are reported instead of raised."""

    @pytest.mark.parametrize("text", [
        "COMMIT|abc|Alice\nsrc/a.py\n",
        "COMMIT|abc|Alice|alice@example.com|yesterday\nsrc/a.py\n",
    ])
    def test_malformed_header(self, analyzer, text):
        """A header that cannot be parsed degrades the whole report."""
        report = analyzer.analyze(text)

        assert report.degraded
        assert report.error
        assert report.bus_factor == 0
        assert report.risk_level == BusFactorRiskLevel.UNKNOWN
        assert report.critical_files == []

    def test_degraded_metric(self, analyzer):
        """The degraded report still converts to a stored metric."""
        metric = analyzer.analyze("COMMIT|broken").to_metric("repo-1")

        assert metric.repository_id == "repo-1"
        assert metric.risk_level == BusFactorRiskLevel.UNKNOWN
        assert metric.error is not None


class TestKnowledgeSilos:
    """Test single-owner areas."""

    def test_silo_threshold(self, analyzer, commit_log):
        """Five single-owner files in one area form a silo, four do not."""
        text = commit_log(
            one_file_per_commit("Alice", [f"billing/{i}.py" for i in range(5)])
            + one_file_per_commit("Bob", [f"search/{i}.py" for i in range(4)])
        )

        silos = analyzer.analyze(text).knowledge_silos

        assert len(silos) == 1
        assert silos[0].owner == "Alice"
        assert silos[0].area == "billing"
        assert silos[0].files == 5
        assert silos[0].commits == 5
        assert silos[0].risk == BusFactorRiskLevel.MEDIUM

    def test_large_silo_is_high_risk(self, analyzer, commit_log):
        """More than ten files makes a silo high risk; silos sort by size."""
        text = commit_log(
            one_file_per_commit("Alice", [f"billing/{i}.py" for i in range(6)])
            + one_file_per_commit("Bob", [f"search/{i}.py" for i in range(11)])
        )

        silos = analyzer.analyze(text).knowledge_silos

        assert [(s.owner, s.risk) for s in silos] == [
            ("Bob", BusFactorRiskLevel.HIGH),
            ("Alice", BusFactorRiskLevel.MEDIUM),
        ]

    def test_top_level_files_use_root_area(self, analyzer, commit_log):
        """Files at the repository root are grouped under the root area."""
        text = commit_log(one_file_per_commit("Alice", [f"tool{i}.py" for i in range(5)]))

        silos = analyzer.analyze(text).knowledge_silos

        assert silos[0].area == ROOT_AREA

    def test_shared_files_are_not_silos(self, analyzer, commit_log):
        """Files below 80% ownership do not count."""
        paths = [f"api/{i}.py" for i in range(6)]
        text = commit_log(one_file_per_commit("Alice", paths) + one_file_per_commit("Bob", paths))

        assert analyzer.analyze(text).knowledge_silos == []


class TestCriticalFiles:
    """Test busy single-owner files."""

    def test_risk_levels_and_order(self, analyzer, commit_log):
        """Score is commits times ownership; files sort by commits."""
        text = commit_log(
            one_file_per_commit("Alice", ["a.py"] * 12)
            + one_file_per_commit("Alice", ["b.py"] * 20)
            + one_file_per_commit("Alice", ["c.py"] * 31)
            + one_file_per_commit("Alice", ["d.py"] * 9)
        )

        critical = analyzer.analyze(text).critical_files

        assert [(c.file_path, c.risk) for c in critical] == [
            ("c.py", BusFactorRiskLevel.CRITICAL),
            ("b.py", BusFactorRiskLevel.HIGH),
            ("a.py", BusFactorRiskLevel.MEDIUM),
        ]
        assert critical[0].commits == 31
        assert critical[0].ownership_percentage == 100

    def test_secondary_owner_at_twenty_percent(self, analyzer, commit_log):
        """A second author with exactly 20% does not protect the file."""
        text = commit_log(
            one_file_per_commit("Alice", ["core.py"] * 12) + one_file_per_commit("Bob", ["core.py"] * 3)
        )

        critical = analyzer.analyze(text).critical_files

        assert len(critical) == 1
        assert critical[0].ownership_percentage == 80
        assert critical[0].risk == BusFactorRiskLevel.MEDIUM

    def test_secondary_owner_above_twenty_percent(self, analyzer, commit_log):
        """A second author with more than 20% removes the file."""
        text = commit_log(
            one_file_per_commit("Alice", ["core.py"] * 12) + one_file_per_commit("Bob", ["core.py"] * 4)
        )

        assert analyzer.analyze(text).critical_files == []

    def test_capped_at_twenty(self, analyzer, commit_log):
        """At most twenty critical files are reported."""
        commits = []
        for i in range(25):
            commits.extend(one_file_per_commit("Alice", [f"m{i}.py"] * (10 + i)))

        critical = analyzer.analyze(commit_log(commits)).critical_files

        assert len(critical) == 20
        assert critical[0].file_path == "m24.py"


class TestRepositoryHistory:
    """Test analysis of a real git repository."""

    def test_read_and_analyze(self, cloner, analyzer, sample_git_repo):
        """Test the commit log of a local repository."""
        report = analyzer.analyze(cloner.read_commit_log(sample_git_repo))

        assert report.total_commits == 3
        assert report.unique_authors == 2
        assert set(report.file_ownership) == {"src/tasks.js", "src/config.js", "calculator.py"}
        assert report.file_ownership["src/tasks.js"].total_commits == 2
        assert report.bus_factor == 1.0
        assert report.risk_level == BusFactorRiskLevel.CRITICAL

    def test_not_a_repository(self, cloner, temp_dir):
        """Reading history outside a repository fails clearly."""
        plain = temp_dir / "plain"
        plain.mkdir()

        with pytest.raises(RepositoryNotFoundError):
            cloner.read_commit_log(plain)
