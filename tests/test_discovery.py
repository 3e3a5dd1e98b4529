"""Tests for candidate file discovery."""

import os

import pytest

from code_risk.ingestion.discovery import discover_files, is_excluded_file


def relative(root, paths):
    return [p.relative_to(root).as_posix() for p in paths]


class TestExclusions:
    """Test file name exclusion patterns."""

    @pytest.mark.parametrize("name", [
        "jquery.min.js", "app.test.js", "app.spec.ts", "test_app.py", "app_test.py", "server_test.go",
    ])
    def test_excluded(self, name):
        """Minified bundles and test files are excluded."""
        assert is_excluded_file(name)

    @pytest.mark.parametrize("name", ["app.js", "testing.py", "contest.go", "latest.ts"])
    def test_not_excluded(self, name):
        """Ordinary source files are kept."""
        assert not is_excluded_file(name)


class TestDiscoverFiles:
    """Test discover_files."""

    def test_selects_source_files(self, sample_source_tree):
        """Excluded directories and files never show up."""
        files = discover_files(sample_source_tree, max_files=100)

        assert relative(sample_source_tree, files) == [
            "src/config.js",
            "src/tasks.js",
            "lib/calculator.py",
        ]

    def test_grouped_by_pattern_then_path(self, temp_dir):
        """Files are ordered by include pattern, then by relative path."""
        for path in ("b/z.py", "a/y.py", "main.go", "b/x.js", "a/w.js", "types.ts"):
            target = temp_dir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("x\n")

        files = discover_files(temp_dir, max_files=100)

        assert relative(temp_dir, files) == ["a/w.js", "b/x.js", "types.ts", "a/y.py", "b/z.py", "main.go"]

    def test_truncates_to_limit(self, temp_dir):
        """Only the first max_files candidates are kept."""
        for i in range(10):
            (temp_dir / f"m{i}.py").write_text("x = 1\n")

        files = discover_files(temp_dir, max_files=4)

        assert relative(temp_dir, files) == ["m0.py", "m1.py", "m2.py", "m3.py"]

    def test_excluded_directories_anywhere(self, temp_dir):
        """Excluded directory names are pruned at any depth."""
        for path in ("pkg/dist/out.js", "pkg/build/gen.py", "pkg/__pycache__/x.py",
                     "pkg/vendor/lib.go", "pkg/src/keep.js"):
            target = temp_dir / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text("x\n")

        assert relative(temp_dir, discover_files(temp_dir, max_files=100)) == ["pkg/src/keep.js"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlinks_are_skipped(self, temp_dir):
        """Symlinked files are not followed."""
        outside = temp_dir / "outside.py"
        outside.write_text("secret = 1\n")
        root = temp_dir / "repo"
        root.mkdir()
        (root / "real.py").write_text("x = 1\n")
        (root / "link.py").symlink_to(outside)

        assert relative(root, discover_files(root, max_files=100)) == ["real.py"]

    def test_empty_directory(self, temp_dir):
        """No candidates is not an error."""
        assert discover_files(temp_dir, max_files=10) == []
