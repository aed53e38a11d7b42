"""Pull-request context: is this run attached to a PR, and where to report."""

from __future__ import annotations

from dataclasses import dataclass

from usta import log


@dataclass(frozen=True)
class PRContext:
    number: int = 0
    branch: str = ""
    comment_id: str | None = None
    is_enabled: bool = False
    repository: str = ""
    run_url: str = ""


DISABLED = PRContext()


def _parse_number(raw: str | int | None) -> int:
    if isinstance(raw, int):
        return max(raw, 0)
    try:
        return max(int((raw or "0").strip()), 0)
    except ValueError:
        return 0


def resolve_pr_context(
    pr_mode: bool,
    number: str | int | None,
    branch: str | None,
    comment_id: str | None = None,
    *,
    repository: str = "",
    run_url: str = "",
) -> PRContext:
    """Build a :class:`PRContext` from raw inputs.

    PR mode only turns on when explicitly requested *and* both the PR number
    and branch are known. Missing fields disable it with a warning.
    """
    if not pr_mode:
        return DISABLED

    pr_number = _parse_number(number)
    pr_branch = (branch or "").strip()
    if not pr_number or not pr_branch:
        log.warn("PR mode enabled but missing PR context (number and branch are required)")
        return DISABLED

    return PRContext(
        number=pr_number,
        branch=pr_branch,
        comment_id=(comment_id or "").strip() or None,
        is_enabled=True,
        repository=repository,
        run_url=run_url,
    )


def log_pr_context(context: PRContext) -> None:
    if context.is_enabled:
        log.info(f"PR context: #{context.number} on branch '{context.branch}'")
        if context.comment_id:
            log.info(f"Progress comment: {context.comment_id}")
    else:
        log.info("Running in standalone mode (not triggered by a PR)")
