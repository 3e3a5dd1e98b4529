"""Pytest configuration and fixtures."""

import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from code_risk.core.constants import GIT_LOG_FORMAT
from code_risk.git.repository import GitCloner
from code_risk.ingestion.models import Repository, RepositoryStatus
from code_risk.storage.memory import InMemoryStore


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def memory_store():
    """Empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def cloner(temp_dir):
    """Cloner writing into a private clone root."""
    return GitCloner(clone_dir=temp_dir / "clones", max_repo_size_mb=50)


@pytest.fixture
def sample_python_code():
    """Sample Python code for testing."""
    return '''
"""Sample module for testing."""

import os
from typing import List, Optional

class Calculator:
    """A simple calculator class."""

    def __init__(self):
        self.history = []

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        result = a + b
        self.history.append(f"add({a}, {b}) = {result}")
        return result

    def divide(self, a: int, b: int) -> float:
        """Divide two numbers."""
        if b == 0 or a is None:
            raise ValueError("bad input")
        return a / b

def main():
    """Main function."""
    calc = Calculator()
    print(calc.add(2, 3))

if __name__ == "__main__":
    main()
'''


@pytest.fixture
def sample_javascript_code():
    """Sample JavaScript code for testing."""
    return '''
/**
 * Sample JavaScript module for testing
 */

import { EventEmitter } from 'events';
const fs = require('fs');

class TaskManager extends EventEmitter {
    constructor() {
        super();
        this.tasks = [];
    }

    addTask(name) {
        const task = { id: Date.now(), name, completed: false };
        this.tasks.push(task);
        return task;
    }

    completeTask(taskId) {
        const task = this.tasks.find(t => t.id === taskId);
        if (task && !task.completed) {
            task.completed = true;
        }
        return task;
    }
}

export default TaskManager;
'''


@pytest.fixture
def sample_source_tree(temp_dir, sample_python_code, sample_javascript_code):
    """A small checkout with source files, excluded files and one hardcoded password."""
    root = temp_dir / "source"
    (root / "src").mkdir(parents=True)
    (root / "lib").mkdir()
    (root / "node_modules" / "left-pad").mkdir(parents=True)

    (root / "src" / "tasks.js").write_text(sample_javascript_code)
    (root / "src" / "config.js").write_text("const password = 'admin12345';\n")
    (root / "lib" / "calculator.py").write_text(sample_python_code)
    (root / "lib" / "test_calculator.py").write_text("def test_add():\n    assert True\n")
    (root / "src" / "tasks.test.js").write_text("eval('1 + 1');\n")
    (root / "src" / "bundle.min.js").write_text("eval(x);\n")
    (root / "node_modules" / "left-pad" / "index.js").write_text("eval(x);\n")
    (root / "README.md").write_text("# Sample\n")
    return root


@pytest.fixture
def sample_git_repo(temp_dir, sample_python_code, sample_javascript_code):
    """Create a sample git repository with two authors."""
    import git

    repo_path = temp_dir / "sample_repo"
    repo_path.mkdir()
    repo = git.Repo.init(repo_path)

    alice = git.Actor("Alice", "alice@example.com")
    bob = git.Actor("Bob", "bob@example.com")

    (repo_path / "src").mkdir()
    (repo_path / "src" / "tasks.js").write_text(sample_javascript_code)
    (repo_path / "src" / "config.js").write_text("const password = 'admin12345';\n")
    (repo_path / "README.md").write_text("# Sample Repository\n")
    repo.index.add(["src/tasks.js", "src/config.js", "README.md"])
    repo.index.commit("Initial commit", author=alice, committer=alice)

    (repo_path / "calculator.py").write_text(sample_python_code)
    repo.index.add(["calculator.py"])
    repo.index.commit("Add calculator", author=bob, committer=bob)

    (repo_path / "src" / "tasks.js").write_text(sample_javascript_code + "\n// updated\n")
    repo.index.add(["src/tasks.js"])
    repo.index.commit("Update tasks", author=alice, committer=alice)

    repo.close()
    return repo_path


@pytest.fixture
def registered_repository(memory_store, sample_git_repo):
    """The sample git repository registered and queued in the memory store."""
    repository = memory_store.save_repository(Repository(
        owner="acme",
        name="sample",
        clone_url=str(sample_git_repo),
    ))
    return memory_store.set_status(repository.id, RepositoryStatus.QUEUED)


def build_commit_log(commits):
    """Render ``(author, [files])`` pairs the way ``git log`` prints ``GIT_LOG_FORMAT``."""
    base = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp())
    blocks = []
    for index, (author, files) in enumerate(commits):
        header = (
            GIT_LOG_FORMAT
            .replace("%H", f"{index:040x}")
            .replace("%an", author)
            .replace("%ae", f"{author.lower()}@example.com")
            .replace("%at", str(base + index * 60))
        )
        blocks.append("\n".join([header, ""] + list(files)))
    return "\n\n".join(blocks) + "\n"


@pytest.fixture
def commit_log():
    """Factory for synthetic commit logs."""
    return build_commit_log


@pytest.fixture
def repo_payload():
    """GitHub ``GET /repos/{owner}/{repo}`` response body."""
    return {
        "id": 1296269,
        "name": "Hello-World",
        "full_name": "octocat/Hello-World",
        "owner": {"login": "octocat"},
        "description": "My first repository",
        "clone_url": "https://github.com/octocat/Hello-World.git",
        "default_branch": "main",
        "language": "JavaScript",
        "size": 108,
        "stargazers_count": 80,
        "forks_count": 9,
        "private": False,
        "topics": ["demo"],
    }
