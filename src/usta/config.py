"""Configuration defaults, env vars, and runtime options for USTA."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from usta.errors import ConfigError

MAX_ATTEMPTS = 3

SPECS_DIR = Path(".usta") / "specs"
TASKS_FILE = "tasks.md"

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_SERVER_URL = "https://github.com"


@dataclass(frozen=True)
class AgentOptions:
    """Options forwarded to the coding agent CLI without interpretation."""

    allowed_tools: str = ""
    disallowed_tools: str = ""
    max_turns: str = ""
    mcp_config: str = ""
    system_prompt: str = ""
    append_system_prompt: str = ""
    fallback_model: str = ""
    model: str = ""
    skip_permissions: bool = False
    raw_log: bool = False


@dataclass
class Config:
    """Runtime configuration, built once by the CLI."""

    spec_name: str = ""
    specs_dir: str = ""
    strict: bool = False

    # Agent
    agent: AgentOptions = field(default_factory=AgentOptions)
    max_attempts: int = MAX_ATTEMPTS  # the runner caps this at MAX_ATTEMPTS
    prompt_dir: str = ""

    # Reporting
    github_token: str = ""
    api_url: str = DEFAULT_API_URL
    report_interval: int = 0

    # Misc
    verbose: bool = False

    def resolved_specs_dir(self, cwd: Path | None = None) -> Path:
        if self.specs_dir:
            return Path(self.specs_dir)
        return (cwd or Path.cwd()) / SPECS_DIR


def env_flag(value: str | None) -> bool:
    """Interpret an action input / env var as a boolean."""
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def validate_environment(env: Mapping[str, str]) -> None:
    """Check that the agent can authenticate. Raises :class:`ConfigError`."""
    if env_flag(env.get("CLAUDE_CODE_USE_BEDROCK")) or env_flag(env.get("CLAUDE_CODE_USE_VERTEX")):
        return
    if not env.get("ANTHROPIC_API_KEY") and not env.get("CLAUDE_CODE_OAUTH_TOKEN"):
        raise ConfigError(
            "ANTHROPIC_API_KEY (or CLAUDE_CODE_OAUTH_TOKEN) is required unless "
            "CLAUDE_CODE_USE_BEDROCK or CLAUDE_CODE_USE_VERTEX is set"
        )


def workflow_run_url(env: Mapping[str, str]) -> str:
    """Return the URL of the current GitHub Actions run, or ``""`` outside CI."""
    repo = env.get("GITHUB_REPOSITORY", "")
    run_id = env.get("GITHUB_RUN_ID", "")
    if not repo or not run_id:
        return ""
    server = env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL
    return f"{server}/{repo}/actions/runs/{run_id}"


def resolve_repo_root() -> Path:
    """Return the git repository root, falling back to cwd."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
            check=True,
        )
        return Path(result.stdout.strip())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path.cwd()


def set_action_output(name: str, value: str, env: Mapping[str, str] | None = None) -> None:
    """Append ``name=value`` to ``$GITHUB_OUTPUT`` when running in Actions."""
    target = (env if env is not None else os.environ).get("GITHUB_OUTPUT")
    if not target:
        return
    with open(target, "a", encoding="utf-8") as f:
        f.write(f"{name}={value}\n")
