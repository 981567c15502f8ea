"""
git-unsaved: find Git repositories holding work that would be lost on delete.

Walks a directory tree, stops at every repository root and reports unpushed
commits, unpushed local references, uncommitted changes and untracked files.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from ._version import __version__
from .formatters import OutputFormatter
from .schema import get_tool_schema

logger = logging.getLogger("git_unsaved")

DEFAULT_REMOTE = "origin"
DEFAULT_TIMEOUT = 120.0

# =============================================================================
# Domain Models
# =============================================================================


class ReferenceKind(StrEnum):
    """Kind of locally referenced object missing from the remote."""

    COMMIT = "commit"
    TAG = "tag"


@dataclass(frozen=True)
class UnpushedReference:
    """A commit or tag that exists only locally."""

    kind: ReferenceKind
    name: str
    subject: str = ""

    def __str__(self) -> str:
        if self.kind == ReferenceKind.COMMIT and self.subject:
            return f"{self.name} {self.subject}"
        return self.name

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "name": self.name, "subject": self.subject}


@dataclass(frozen=True)
class StatusVector:
    """The four independent risk flags of a repository, in display order."""

    ahead: bool = False
    unpushed_references: bool = False
    uncommitted_changes: bool = False
    untracked_files: bool = False

    @property
    def has_issues(self) -> bool:
        return any(self.as_tuple())

    def as_tuple(self) -> tuple[bool, bool, bool, bool]:
        return (
            self.ahead,
            self.unpushed_references,
            self.uncommitted_changes,
            self.untracked_files,
        )

    def to_dict(self) -> dict:
        return {
            "ahead": self.ahead,
            "unpushed_references": self.unpushed_references,
            "uncommitted_changes": self.uncommitted_changes,
            "untracked_files": self.untracked_files,
        }


@dataclass(frozen=True)
class ScanConfig:
    """Settings for one scan. Built once by the CLI and never changed."""

    show_all: bool = False
    fetch: bool = False
    pull: bool = False
    deep_check: bool = False
    verbose: bool = False
    very_verbose: bool = False
    jobs: int = 1
    timeout: float | None = DEFAULT_TIMEOUT
    remote: str = DEFAULT_REMOTE
    include_hidden: bool = False

    @classmethod
    def create(cls, *, very_verbose: bool = False, verbose: bool = False, **kwargs) -> ScanConfig:
        """Build a config; very verbose output implies verbose output."""
        return cls(verbose=verbose or very_verbose, very_verbose=very_verbose, **kwargs)


@dataclass
class RepositoryReport:
    """Everything computed for one repository during a scan."""

    path: Path
    status: StatusVector
    references: list[UnpushedReference] = field(default_factory=list)
    sync_output: str = ""
    untracked_files: list[str] = field(default_factory=list)
    dirty_files: list[str] = field(default_factory=list)
    status_text: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": str(self.path),
            "status": self.status.to_dict(),
            "unpushed_references": [r.to_dict() for r in self.references],
            "untracked_files": self.untracked_files,
            "dirty_files": self.dirty_files,
            "sync_output": self.sync_output,
        }


@dataclass
class ScanSummary:
    """Counts over the reports emitted by a scan."""

    total: int = 0
    ahead: int = 0
    unpushed_references: int = 0
    uncommitted_changes: int = 0
    untracked_files: int = 0
    clean: int = 0

    def add(self, report: RepositoryReport):
        status = report.status
        self.total += 1
        self.ahead += status.ahead
        self.unpushed_references += status.unpushed_references
        self.uncommitted_changes += status.uncommitted_changes
        self.untracked_files += status.untracked_files
        if not status.has_issues:
            self.clean += 1

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "ahead": self.ahead,
            "unpushed_references": self.unpushed_references,
            "uncommitted_changes": self.uncommitted_changes,
            "untracked_files": self.untracked_files,
            "clean": self.clean,
        }


# =============================================================================
# Git Operations
# =============================================================================


def is_repository_root(path: Path) -> bool:
    """Check for a .git directory directly under path."""
    try:
        return (path / ".git").is_dir()
    except OSError:
        return False


def _lines(text: str) -> list[str]:
    return [line for line in text.strip().splitlines() if line.strip()]


class GitOperations:
    """Low-level Git queries for a single repository.

    Read-only queries return a "not applicable" value (None, False or an
    empty collection) when git fails. fetch and pull return a
    ``(success, output)`` pair instead of raising.
    """

    def __init__(self, repo_path: Path, timeout: float | None = DEFAULT_TIMEOUT):
        self.repo_path = repo_path
        self.timeout = timeout

    def _run(
        self, *args: str, network: bool = False
    ) -> subprocess.CompletedProcess | None:
        """Run a git command in the repository.

        Returns None if git could not be run at all or timed out.
        """
        env = None
        if network:
            # never block on a credential prompt
            env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            return subprocess.run(
                ["git", "--no-pager", *args],
                cwd=self.repo_path,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                env=env,
                timeout=self.timeout if network else None,
            )
        except subprocess.TimeoutExpired:
            logger.warning("git %s timed out after %ss in %s", args[0], self.timeout, self.repo_path)
        except OSError as e:
            logger.debug("git %s failed in %s: %s", args[0], self.repo_path, e)
        return None

    def get_ahead_count(self) -> int | None:
        """Commits on the current branch missing from its upstream.

        None when no upstream is configured.
        """
        result = self._run("rev-list", "--count", "@{upstream}..HEAD")
        if result is None or result.returncode != 0:
            return None
        try:
            return int(result.stdout.strip())
        except ValueError:
            return None

    def is_dirty(self) -> bool:
        """Check for tracked-file modifications in the working tree."""
        result = self._run("diff", "--quiet")
        return result is not None and result.returncode == 1

    def has_untracked(self) -> bool:
        """Check for untracked files not excluded by ignore rules."""
        result = self._run("status", "--porcelain")
        if result is None or result.returncode != 0:
            return False
        return any(line.startswith("??") for line in result.stdout.splitlines())

    def get_local_only_commits(self) -> list[tuple[str, str]]:
        """Commits reachable from a local branch but no remote-tracking branch."""
        result = self._run("log", "--branches", "--not", "--remotes", "--format=%h %s")
        if result is None or result.returncode != 0:
            return []
        commits = []
        for line in _lines(result.stdout):
            short_hash, _, subject = line.partition(" ")
            commits.append((short_hash, subject))
        return commits

    def get_local_tags(self) -> list[str]:
        result = self._run("tag")
        if result is None or result.returncode != 0:
            return []
        return [line.strip() for line in _lines(result.stdout)]

    def get_remote_tags(self, remote: str = DEFAULT_REMOTE) -> set[str] | None:
        """Tag names advertised by a remote, None if it cannot be listed."""
        result = self._run("ls-remote", "--tags", remote, network=True)
        if result is None or result.returncode != 0:
            return None
        tags = set()
        for line in _lines(result.stdout):
            parts = line.split()
            if len(parts) != 2:
                continue
            ref = parts[1].removeprefix("refs/tags/").removesuffix("^{}")
            tags.add(ref)
        return tags

    def _sync(self, *args: str) -> tuple[bool, str]:
        result = self._run(*args, network=True)
        if result is None:
            return False, f"git {args[0]} did not complete"
        output = "\n".join(part.strip() for part in (result.stdout, result.stderr) if part.strip())
        return result.returncode == 0, output

    def fetch(self) -> tuple[bool, str]:
        """Fetch from the default remote."""
        return self._sync("fetch")

    def pull(self) -> tuple[bool, str]:
        """Pull, refusing anything but a fast-forward."""
        return self._sync("pull", "--ff-only")

    def get_untracked_files(self) -> list[str]:
        result = self._run("ls-files", "--others", "--exclude-standard")
        if result is None or result.returncode != 0:
            return []
        return _lines(result.stdout)

    def get_dirty_files(self) -> list[str]:
        result = self._run("diff", "--name-only")
        if result is None or result.returncode != 0:
            return []
        return _lines(result.stdout)

    def get_status_text(self) -> str:
        result = self._run("status")
        if result is None or result.returncode != 0:
            return ""
        return result.stdout.rstrip()


# =============================================================================
# Classification
# =============================================================================


def find_unpushed_references(
    ops: GitOperations, remote: str = DEFAULT_REMOTE
) -> list[UnpushedReference]:
    """Local-only commits, newest first, then local tags the remote lacks."""
    references = [
        UnpushedReference(ReferenceKind.COMMIT, short_hash, subject)
        for short_hash, subject in ops.get_local_only_commits()
    ]

    local_tags = ops.get_local_tags()
    if local_tags:
        remote_tags = ops.get_remote_tags(remote)
        if remote_tags is None:
            logger.warning("Could not list tags of %r for %s", remote, ops.repo_path)
            remote_tags = set()
        references.extend(
            UnpushedReference(ReferenceKind.TAG, tag) for tag in local_tags if tag not in remote_tags
        )

    return references


def classify(
    ops: GitOperations,
    deep_check: bool,
    references: list[UnpushedReference] | None = None,
) -> StatusVector:
    """Compute the status vector of a repository."""
    ahead = ops.get_ahead_count()
    return StatusVector(
        ahead=ahead is not None and ahead > 0,
        unpushed_references=deep_check and bool(references),
        uncommitted_changes=ops.is_dirty(),
        untracked_files=ops.has_untracked(),
    )


# =============================================================================
# Scanner
# =============================================================================


class RepositoryScanner:
    """Walk a directory tree and inspect every repository found in it."""

    def __init__(
        self,
        root_path: Path,
        config: ScanConfig,
        ops_factory: Callable[[Path, float | None], GitOperations] = GitOperations,
    ):
        self.root_path = root_path
        self.config = config
        self.ops_factory = ops_factory

    def _entries(self, directory: Path) -> list[os.DirEntry]:
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            logger.warning("Skipping %s: %s", directory, e.strerror or e)
            return []
        entries.sort(key=lambda entry: entry.name)
        return entries

    def discover(self) -> Iterator[Path]:
        """Yield repository roots below the root path, depth first."""
        visited: set[Path] = set()
        yield from self._walk(self.root_path, visited)

    def _walk(self, directory: Path, visited: set[Path]) -> Iterator[Path]:
        try:
            real = directory.resolve()
        except OSError:
            return
        if real in visited:
            logger.debug("Already visited %s, skipping", directory)
            return
        visited.add(real)

        for entry in self._entries(directory):
            if entry.name.startswith(".") and not self.config.include_hidden:
                continue
            try:
                if not entry.is_dir():
                    continue
            except OSError:
                continue

            path = Path(entry.path)
            if is_repository_root(path):
                try:
                    real_repo = path.resolve()
                except OSError:
                    continue
                if real_repo in visited:
                    logger.debug("Already reported %s, skipping", path)
                    continue
                visited.add(real_repo)
                yield path
            else:
                yield from self._walk(path, visited)

    def inspect(self, path: Path) -> RepositoryReport:
        """Run every requested query against one repository."""
        config = self.config
        ops = self.ops_factory(path, config.timeout)

        outputs = []
        if config.fetch:
            success, output = ops.fetch()
            if not success:
                logger.info("Fetch failed for %s", path)
            outputs.append(output)
        if config.pull:
            success, output = ops.pull()
            if not success:
                logger.info("Pull failed for %s", path)
            outputs.append(output)

        references = find_unpushed_references(ops, config.remote) if config.deep_check else []
        status = classify(ops, config.deep_check, references)

        report = RepositoryReport(
            path=path,
            status=status,
            references=references,
            sync_output="\n".join(o for o in outputs if o),
        )
        if config.verbose:
            if status.untracked_files:
                report.untracked_files = ops.get_untracked_files()
            if status.uncommitted_changes:
                report.dirty_files = ops.get_dirty_files()
        if config.very_verbose:
            report.status_text = ops.get_status_text()
        return report

    def _inspect_all(self) -> Iterator[RepositoryReport]:
        if self.config.jobs <= 1:
            for path in self.discover():
                yield self.inspect(path)
            return
        with ThreadPoolExecutor(max_workers=self.config.jobs) as executor:
            # map() yields in submission order, i.e. depth-first order
            yield from executor.map(self.inspect, self.discover())

    def scan(self) -> Iterator[RepositoryReport]:
        """Yield a report for each repository that should be shown."""
        for report in self._inspect_all():
            if self.config.show_all or report.status.has_issues:
                yield report


def scan(root_path: Path, config: ScanConfig) -> Iterator[RepositoryReport]:
    """Scan a directory tree with the default git backend."""
    return RepositoryScanner(root_path, config).scan()


# =============================================================================
# CLI Application
# =============================================================================


def setup_logging(level: str = "WARNING"):
    """Send diagnostics to stderr through rich."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    logging.basicConfig(level="WARNING", format="%(message)s", handlers=[handler], force=True)
    logger.setLevel(level.upper())


app = typer.Typer(
    name="git-unsaved",
    help="Find Git repositories with work that would be lost if they were deleted.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-unsaved {__version__}")
        raise typer.Exit()


def schema_callback(value: bool):
    """Print the tool schema and exit."""
    if value:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


@app.command()
def main(
    directory: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        dir_okay=True,
        help="Directory to scan for repositories",
    ),
    show_all: bool = typer.Option(
        False, "--all", "-a", help="Show all repositories, including those without any issues."
    ),
    fetch: bool = typer.Option(
        False, "--fetch", "-f", help="Fetch the latest changes from the remote repository."
    ),
    pull: bool = typer.Option(
        False,
        "--pull",
        "-p",
        help="Pull the latest changes from the remote repository (fast-forward only).",
    ),
    deep: bool = typer.Option(
        False, "--deep", "-d", help="Perform a deep check for unpushed but locally referenced commits."
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Output detailed information for issues indicated by '*', '~', and '!' symbols.",
    ),
    very_verbose: bool = typer.Option(
        False,
        "--very-verbose",
        "-V",
        help="Also output the git status and results of fetch/pull calls for each repository.",
    ),
    jobs: int = typer.Option(
        1,
        "--jobs",
        min=1,
        envvar="GIT_UNSAVED_JOBS",
        help="Number of repositories to inspect in parallel",
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT,
        "--timeout",
        min=1,
        envvar="GIT_UNSAVED_TIMEOUT",
        help="Seconds allowed for each fetch, pull or remote tag listing",
    ),
    remote: str = typer.Option(
        DEFAULT_REMOTE, "--remote", help="Remote to compare local tags against"
    ),
    hidden: bool = typer.Option(False, "--hidden", help="Also descend into hidden directories"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        envvar="GIT_UNSAVED_LOG_LEVEL",
        help="Level of diagnostics written to stderr",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        callback=schema_callback,
        is_eager=True,
        help="Output tool schema for AI agents",
    ),
):
    """Recursively scan DIRECTORY for Git repositories that have issues.

    An issue is anything that could lead to data loss if the repository were
    deleted. Each repository is printed with up to four symbols:

    \b
      ↑  local commits on the current branch that have not been pushed
      !  unpushed but locally referenced commits or tags (with -d)
      ~  uncommitted changes in the working tree
      *  untracked files that are not ignored
    """
    try:
        setup_logging(log_level)
    except ValueError:
        raise typer.BadParameter(
            f"unknown log level {log_level!r}", param_hint="--log-level"
        ) from None

    config = ScanConfig.create(
        show_all=show_all,
        fetch=fetch,
        pull=pull,
        deep_check=deep,
        verbose=verbose,
        very_verbose=very_verbose,
        jobs=jobs,
        timeout=timeout,
        remote=remote,
        include_hidden=hidden,
    )
    console = Console(highlight=False, soft_wrap=True)
    formatter = OutputFormatter(console, use_json=json_output)

    summary = ScanSummary()
    reports = []
    for report in scan(directory, config):
        summary.add(report)
        if json_output:
            reports.append(report)
        else:
            formatter.print_report(report, config)

    if json_output:
        formatter.print_json(reports, summary)
