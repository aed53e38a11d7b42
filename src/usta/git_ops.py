"""Git operations: commit, push, and hard rollback of the working tree."""

from __future__ import annotations

import subprocess
from pathlib import Path

from usta import log


def _git(*args: str, cwd: Path | None = None, check: bool = False) -> subprocess.CompletedProcess[str]:
    """Run a git command, capturing output."""
    return subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
        check=check,
    )


def _first_line(r: subprocess.CompletedProcess[str]) -> str:
    out = (r.stderr or r.stdout or "").strip()
    return out.splitlines()[0] if out else f"exit code {r.returncode}"


def has_dirty_worktree(cwd: Path | None = None) -> bool:
    r = _git("status", "--porcelain", cwd=cwd)
    return bool(r.stdout.strip())


def add_and_commit(message: str, cwd: Path | None = None) -> bool:
    """Stage everything and commit. A clean tree counts as success."""
    r = _git("add", "-A", cwd=cwd)
    if r.returncode != 0:
        log.error(f"git add failed: {_first_line(r)}")
        return False
    if not has_dirty_worktree(cwd=cwd):
        log.info("No changes to commit")
        return True
    r = _git("commit", "-m", message, cwd=cwd)
    if r.returncode != 0:
        log.error(f"git commit failed: {_first_line(r)}")
        return False
    return True


def push(branch: str, cwd: Path | None = None) -> bool:
    log.info(f"Pushing changes to branch: {branch}")
    r = _git("push", "origin", f"HEAD:{branch}", cwd=cwd)
    if r.returncode != 0:
        log.error(f"git push failed: {_first_line(r)}")
        return False
    log.success(f"Pushed to {branch}")
    return True


def reset_hard(cwd: Path | None = None) -> bool:
    """Discard tracked changes and remove untracked files."""
    r = _git("reset", "--hard", "HEAD", cwd=cwd)
    if r.returncode != 0:
        log.error(f"git reset failed: {_first_line(r)}")
        return False
    r = _git("clean", "-fd", cwd=cwd)
    if r.returncode != 0:
        log.error(f"git clean failed: {_first_line(r)}")
        return False
    return True


class GitGateway:
    """The two git operations the runner needs.

    ``push_branch`` is set only in PR mode; without it commits stay local.
    """

    def __init__(self, cwd: Path | None = None, push_branch: str | None = None) -> None:
        self.cwd = cwd
        self.push_branch = push_branch or None

    def commit_and_push(self, message: str) -> bool:
        if not add_and_commit(message, cwd=self.cwd):
            return False
        if self.push_branch:
            return push(self.push_branch, cwd=self.cwd)
        return True

    def rollback(self) -> bool:
        log.warn("Rolling back working tree to last commit")
        return reset_hard(cwd=self.cwd)
