"""Local git plumbing: changed files, repository info and a rough effort estimate.

Everything here shells out to the ``git`` binary and never raises for git
failures: an unreachable ref or a directory that is not a repository yields
zero changed files, not an error.
"""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path

from crflow_core.models import DiffFile, FileStatus

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 15

_PROJECT_NAME_RE = re.compile(r"[/:]([^/:]+?)(?:\.git)?/?$")

HOURS_PER_COMMIT = 2
DEFAULT_WORK_HOURS = 8


@dataclass
class RepoInfo:
    project_url: str
    project_name: str
    current_branch: str
    is_git_repository: bool
    last_commit_hash: str | None = None


def _git(args: list[str], cwd: str | None = None) -> str | None:
    """Run ``git <args>`` and return stdout, or None on any failure."""
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=_GIT_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired) as e:
        logger.warning("git %s failed: %s", args[0], e)
        return None
    if result.returncode != 0:
        logger.debug("git %s exited %d: %s", " ".join(args), result.returncode, result.stderr.strip())
        return None
    return result.stdout


def parse_name_status(output: str) -> list[tuple[str, str]]:
    """Parse ``git diff -z --name-status`` output into (status letter, new path) pairs.

    Fields are NUL-separated and paths are never quoted. Renames and copies
    carry two paths, old then new.
    """
    fields = output.split("\0")
    entries = []
    i = 0
    while i < len(fields):
        status = fields[i]
        if not status.strip():
            i += 1
            continue
        status = status.strip()
        if status[0] in "RC":
            if i + 2 >= len(fields):
                break
            entries.append((status, fields[i + 2]))
            i += 3
        else:
            if i + 1 >= len(fields):
                break
            entries.append((status, fields[i + 1]))
            i += 2
    return entries


def parse_numstat(output: str) -> dict[str, tuple[int, int]]:
    """Parse ``git diff -z --numstat`` output into {new path: (insertions, deletions)}.

    A rename leaves the path column empty and is followed by the old and new
    paths as separate fields. Binary files report "-" for both counts; they
    are recorded as 0.
    """
    fields = output.split("\0")
    counts: dict[str, tuple[int, int]] = {}
    i = 0
    while i < len(fields):
        parts = fields[i].lstrip("\n").split("\t", 2)
        i += 1
        if len(parts) != 3:
            continue
        insertions, deletions, path = parts
        if not path:
            if i + 1 >= len(fields):
                break
            path = fields[i + 1]
            i += 2
        counts[path] = (
            int(insertions) if insertions.isdigit() else 0,
            int(deletions) if deletions.isdigit() else 0,
        )
    return counts


def get_changed_files(base_ref: str = "main", cwd: str | None = None) -> list[DiffFile]:
    """Return the files that differ between ``base_ref`` and the working tree."""
    name_status = _git(["diff", "-M", "-z", "--name-status", base_ref, "--"], cwd)
    if name_status is None:
        logger.warning("Could not diff against %r; treating as no changes.", base_ref)
        return []

    counts = parse_numstat(_git(["diff", "-M", "-z", "--numstat", base_ref, "--"], cwd) or "")
    files = []
    for status, path in parse_name_status(name_status):
        insertions, deletions = counts.get(path, (0, 0))
        files.append(
            DiffFile(path=path, status=FileStatus.from_git(status), insertions=insertions, deletions=deletions)
        )
    return files


def project_name_from_url(url: str) -> str | None:
    """Extract the repository name from an HTTPS or SSH remote URL."""
    match = _PROJECT_NAME_RE.search(url.strip())
    return match.group(1) if match else None


def get_repo_info(cwd: str | None = None) -> RepoInfo:
    """Collect remote URL, project name, branch and last commit for ``cwd``."""
    workdir = Path(cwd or ".").resolve()
    default = RepoInfo(project_url="", project_name=workdir.name, current_branch="", is_git_repository=False)

    inside = _git(["rev-parse", "--is-inside-work-tree"], cwd)
    if inside is None or inside.strip() != "true":
        return default

    project_url = ""
    remotes = (_git(["remote"], cwd) or "").split()
    if remotes:
        remote = "origin" if "origin" in remotes else remotes[0]
        project_url = (_git(["remote", "get-url", remote], cwd) or "").strip()

    branch = (_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd) or "").strip()
    last_commit = (_git(["log", "-1", "--format=%H"], cwd) or "").strip() or None

    return RepoInfo(
        project_url=project_url,
        project_name=(project_name_from_url(project_url) if project_url else None) or workdir.name,
        current_branch=branch,
        is_git_repository=True,
        last_commit_hash=last_commit,
    )


def estimate_work_hours(cwd: str | None = None, days_back: int = 7) -> int:
    """Rough effort estimate: HOURS_PER_COMMIT per commit in the last ``days_back`` days."""
    since = (date.today() - timedelta(days=days_back)).isoformat()
    output = _git(["log", f"--since={since}", "--format=%H"], cwd)
    if output is None:
        return DEFAULT_WORK_HOURS
    commits = len([line for line in output.splitlines() if line.strip()])
    return max(1, commits * HOURS_PER_COMMIT)
