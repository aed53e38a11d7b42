"""USTA CLI — run a spec's tasks through Claude Code, one at a time.

Installed as the ``usta`` console_script. Every option can also be given
through the environment, which is how the GitHub Action passes its inputs.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from usta import __version__
from usta.config import (
    DEFAULT_API_URL,
    AgentOptions,
    Config,
    env_flag,
    resolve_repo_root,
    set_action_output,
    validate_environment,
    workflow_run_url,
)
from usta.errors import UstaError
from usta.pr_context import PRContext, resolve_pr_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@click.command(context_settings=CONTEXT_SETTINGS)
@click.argument("spec_name", required=False, envvar="INPUT_SPEC_NAME")
@click.option("--specs-dir", envvar="USTA_SPECS_DIR", default="", help="Directory of named specs (default: .usta/specs)")
@click.option("--strict", is_flag=True, envvar="USTA_STRICT_PARSE", help="Reject malformed lines in tasks.md")
@click.option("--pr-mode", envvar="USTA_PR_MODE", default="", help="Run attached to a pull request (true/false)")
@click.option("--pr-number", envvar="USTA_PR_NUMBER", default="", help="Pull request number")
@click.option("--pr-branch", envvar="USTA_PR_BRANCH", default="", help="Pull request head branch")
@click.option("--comment-id", envvar="USTA_COMMENT_ID", default="", help="Comment to keep updated with progress")
@click.option("--github-token", envvar="GITHUB_TOKEN", default="", show_envvar=True, help="Token for the comment API")
@click.option("--report-interval", type=int, envvar="USTA_REPORT_INTERVAL", default=0, help="Refresh the comment every N seconds (0=off)")
@click.option("--allowed-tools", envvar="INPUT_ALLOWED_TOOLS", default="", help="Tools the agent may use")
@click.option("--disallowed-tools", envvar="INPUT_DISALLOWED_TOOLS", default="", help="Tools the agent may not use")
@click.option("--max-turns", envvar="INPUT_MAX_TURNS", default="", help="Max agent turns per run")
@click.option("--mcp-config", envvar="INPUT_MCP_CONFIG", default="", help="MCP server config for the agent")
@click.option("--system-prompt", envvar="INPUT_SYSTEM_PROMPT", default="", help="Replace the agent system prompt")
@click.option("--append-system-prompt", envvar="INPUT_APPEND_SYSTEM_PROMPT", default="", help="Append to the agent system prompt")
@click.option("--fallback-model", envvar="INPUT_FALLBACK_MODEL", default="", help="Model to use when the default is overloaded")
@click.option("--model", envvar="INPUT_MODEL", default="", help="Agent model override")
@click.option("--skip-permissions", envvar="INPUT_DANGEROUSLY_SKIP_PERMISSIONS", default="", help="Pass --dangerously-skip-permissions (true/false)")
@click.option("--raw-log", envvar="INPUT_ENABLE_LOGGING", default="", help="Echo the agent's raw stream-json output (true/false)")
@click.option("-v", "--verbose", is_flag=True, envvar="USTA_VERBOSE", help="Show debug output")
@click.version_option(__version__, prog_name="usta")
def main(
    spec_name: str | None,
    specs_dir: str,
    strict: bool,
    pr_mode: str,
    pr_number: str,
    pr_branch: str,
    comment_id: str,
    github_token: str,
    report_interval: int,
    allowed_tools: str,
    disallowed_tools: str,
    max_turns: str,
    mcp_config: str,
    system_prompt: str,
    append_system_prompt: str,
    fallback_model: str,
    model: str,
    skip_permissions: str,
    raw_log: str,
    verbose: bool,
) -> None:
    """USTA — execute a spec's checklist with an AI coding agent.

    Picks the next unchecked task in tasks.md, lets the agent work on it,
    asks the agent to verify the result, then commits (or rolls back and
    retries, up to 3 attempts) and checks the task off.

    \b
    EXAMPLES:
      usta user-auth                       # fuzzy match under .usta/specs
      usta .usta/specs/user-auth/tasks.md  # explicit path
      INPUT_SPEC_NAME=user-auth usta       # as run by the GitHub Action
    """
    from usta import log as ulog

    env = os.environ
    ulog.set_verbose(verbose)
    ulog.set_annotations(env_flag(env.get("GITHUB_ACTIONS")))

    context = resolve_pr_context(
        env_flag(pr_mode),
        pr_number,
        pr_branch,
        comment_id,
        repository=env.get("GITHUB_REPOSITORY", ""),
        run_url=workflow_run_url(env),
    )

    cfg = Config(
        spec_name=spec_name or "",
        specs_dir=specs_dir,
        strict=strict,
        agent=AgentOptions(
            allowed_tools=allowed_tools,
            disallowed_tools=disallowed_tools,
            max_turns=max_turns,
            mcp_config=mcp_config,
            system_prompt=system_prompt,
            append_system_prompt=append_system_prompt,
            fallback_model=fallback_model,
            model=model,
            skip_permissions=env_flag(skip_permissions),
            raw_log=env_flag(raw_log),
        ),
        github_token=github_token,
        api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        report_interval=report_interval,
        verbose=verbose,
    )

    try:
        validate_environment(env)
        success = _run_pipeline(cfg, context)
    except UstaError as exc:
        ulog.error(f"Action failed with error: {exc}")
        success = False
    except KeyboardInterrupt:
        ulog.warn("Interrupted!")
        success = False

    set_action_output("conclusion", "success" if success else "failure")
    if not success:
        sys.exit(1)


def _run_pipeline(cfg: Config, context: PRContext) -> bool:
    """Resolve the spec, wire the collaborators, run every task."""
    from usta import log as ulog
    from usta.engines.claude import ClaudeEngine
    from usta.git_ops import GitGateway
    from usta.github import CommentClient
    from usta.pr_context import log_pr_context
    from usta.reporter import ProgressReporter
    from usta.runner import Runner
    from usta.spec.io import load_task_list
    from usta.spec.resolve import resolve_spec_location

    # ── Pre-flight: agent check ──────────────────────────────────
    engine = ClaudeEngine(cfg.agent)
    err = engine.check_available()
    if err:
        ulog.error(err)
        return False

    # ── Resolve and parse the spec ───────────────────────────────
    cwd = Path.cwd()
    spec_dir = resolve_spec_location(cfg.spec_name, cwd=cwd, specs_dir=cfg.resolved_specs_dir(cwd))
    task_list = load_task_list(spec_dir, strict=cfg.strict)
    progress = task_list.progress()
    ulog.info(f"Spec: {spec_dir}")
    ulog.info(f"Tasks: {progress.completed}/{progress.total} completed ({progress.percentage}%)")
    log_pr_context(context)

    # ── Wire collaborators ───────────────────────────────────────
    client = None
    if context.is_enabled and context.comment_id:
        if not cfg.github_token:
            ulog.warn("GITHUB_TOKEN not set; progress comment will not be updated")
        client = CommentClient(context.repository, cfg.github_token, api_url=cfg.api_url)

    reporter = ProgressReporter.create(
        context,
        spec_dir.name,
        task_list.all_tasks(),
        client=client,
    )
    git = GitGateway(cwd=resolve_repo_root(), push_branch=context.branch if context.is_enabled else None)
    runner = Runner(cfg, spec_dir, engine, git, reporter, cwd=cwd)

    try:
        success = runner.run()
    finally:
        if client is not None:
            client.close()

    if success:
        _show_summary(runner, spec_dir)
    return success


def _show_summary(runner: object, spec_dir: Path) -> None:
    from usta import log as ulog
    from usta.runner import Runner
    from usta.spec.io import task_progress

    assert isinstance(runner, Runner)
    progress = task_progress(spec_dir)
    ulog.console.print("")
    ulog.console.print("[bold]============================================[/bold]")
    ulog.success(f"All tasks completed ({progress.completed}/{progress.total})")
    ulog.info(f"Tasks finished this run: {len(runner.completed_task_ids)}")
    if runner.total_input_tokens or runner.total_output_tokens:
        ulog.info(f"Tokens: {runner.total_input_tokens} in / {runner.total_output_tokens} out")
    ulog.console.print("[bold]============================================[/bold]")
