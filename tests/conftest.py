import subprocess
from pathlib import Path

import pytest


class FakeOperations:
    """In-memory stand-in for GitOperations."""

    def __init__(
        self,
        repo_path,
        timeout=None,
        *,
        ahead=None,
        dirty=False,
        untracked=False,
        commits=(),
        local_tags=(),
        remote_tags=frozenset(),
        fetch_result=(True, ""),
        pull_result=(True, ""),
        untracked_files=(),
        dirty_files=(),
        status_text="",
    ):
        self.repo_path = repo_path
        self.timeout = timeout
        self.ahead = ahead
        self.dirty = dirty
        self.untracked = untracked
        self.commits = list(commits)
        self.local_tags = list(local_tags)
        self.remote_tags = remote_tags
        self.fetch_result = fetch_result
        self.pull_result = pull_result
        self.untracked_files = list(untracked_files)
        self.dirty_files = list(dirty_files)
        self.status_text = status_text
        self.calls = []

    def get_ahead_count(self):
        self.calls.append("ahead")
        return self.ahead

    def is_dirty(self):
        self.calls.append("dirty")
        return self.dirty

    def has_untracked(self):
        self.calls.append("untracked")
        return self.untracked

    def get_local_only_commits(self):
        self.calls.append("commits")
        return self.commits

    def get_local_tags(self):
        self.calls.append("local_tags")
        return self.local_tags

    def get_remote_tags(self, remote="origin"):
        self.calls.append(("remote_tags", remote))
        return None if self.remote_tags is None else set(self.remote_tags)

    def fetch(self):
        self.calls.append("fetch")
        return self.fetch_result

    def pull(self):
        self.calls.append("pull")
        return self.pull_result

    def get_untracked_files(self):
        return self.untracked_files

    def get_dirty_files(self):
        return self.dirty_files

    def get_status_text(self):
        return self.status_text


@pytest.fixture
def fake_ops():
    """Build FakeOperations directly."""
    return FakeOperations


@pytest.fixture
def ops_factory():
    """Factory keyed on repository directory name; records every instance."""

    class Factory:
        def __init__(self):
            self.states = {}
            self.created = {}

        def __call__(self, path, timeout):
            ops = FakeOperations(path, timeout, **self.states.get(path.name, {}))
            self.created[path.name] = ops
            return ops

    return Factory()


@pytest.fixture
def make_tree(tmp_path):
    """Create directories (and .git markers) under a scan root."""
    root = tmp_path / "scan"
    root.mkdir(exist_ok=True)

    def make(*paths, repos=()):
        for p in paths:
            (root / p).mkdir(parents=True, exist_ok=True)
        for p in repos:
            (root / p / ".git").mkdir(parents=True, exist_ok=True)
        return root

    return make


# =============================================================================
# Real git repositories
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_git(monkeypatch, tmp_path):
    """Keep user and system git configuration out of the tests."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("LC_ALL", "C")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout


class GitHelper:
    def __init__(self, base: Path):
        self.base = base

    def run(self, cwd: Path, *args: str) -> str:
        return git(cwd, *args)

    def commit(self, repo: Path, name: str = "file.txt", content: str = "x\n", message: str = ""):
        (repo / name).write_text(content)
        git(repo, "add", name)
        git(repo, "commit", "-q", "-m", message or f"add {name}")

    def init(self, path: Path, commit: bool = True) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        git(path, "init", "-q")
        git(path, "symbolic-ref", "HEAD", "refs/heads/main")
        if commit:
            self.commit(path, "README.md", "hello\n", "initial commit")
        return path

    def add_remote(self, repo: Path, name: str = "origin") -> Path:
        """Create a bare remote outside any scan root and push main to it."""
        remote = self.base / "remotes" / f"{repo.name}-{name}.git"
        remote.mkdir(parents=True)
        git(remote, "init", "-q", "--bare")
        git(remote, "symbolic-ref", "HEAD", "refs/heads/main")
        git(repo, "remote", "add", name, str(remote))
        git(repo, "push", "-q", "-u", name, "main")
        return remote


@pytest.fixture
def gitrepo(tmp_path):
    return GitHelper(tmp_path)


@pytest.fixture
def scan_root(tmp_path):
    root = tmp_path / "scan"
    root.mkdir(exist_ok=True)
    return root
