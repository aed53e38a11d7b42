"""Work and verification prompts handed to the coding agent."""

from __future__ import annotations

import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from usta.errors import TaskNotFoundError
from usta.io_utils import write_text
from usta.spec.io import get_task
from usta.spec.model import Task

# Printed by the agent only when verification passes. Alphanumerics and
# underscores only, so it survives JSON escaping in stream output verbatim.
SUCCESS_MARKER = "USTA_TASK_VERIFIED_7F3A91C2"

_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _require_task(spec_dir: Path, task_id: str) -> Task:
    task = get_task(spec_dir, task_id)
    if task is None:
        raise TaskNotFoundError(f"Task with ID {task_id} not found in spec {spec_dir}")
    return task


def build_work_prompt(spec_dir: Path, task_id: str) -> str:
    task = _require_task(spec_dir, task_id)
    return f"""You are working on {task.title} in {spec_dir}.
- Must read requirements.md, design.md, and tasks.md before executing
- Execute only ONE task at a time
- Focus only on the requested task, not others
- Do NOT edit the checkboxes in tasks.md
- Stop after completing the task

current date: {_now()}
"""


def build_verification_prompt(spec_dir: Path, task_id: str) -> str:
    task = _require_task(spec_dir, task_id)
    return f"""The coding agent has finished the task {task.title} in {spec_dir}.

You must verify the task using <DEVELOPER PERSPECTIVE>
- If and only if the task is complete, print this exact line: {SUCCESS_MARKER}
- If the task is not complete, do NOT print that line; explain why instead

<DEVELOPER PERSPECTIVE>
- Take a step back, try to use the feature from a fresh perspective
- Check the README.md and related docs
- Check for configs/environment variables
- Build/Run the project
- Test the features end-to-end using <MANUAL TESTING>
</DEVELOPER PERSPECTIVE>

current date: {_now()}
"""


def stage_prompt(prompt: str, key: str, *, prompt_dir: Path | None = None) -> Path:
    """Write *prompt* to ``prompt-<key>.txt`` and return its path."""
    directory = prompt_dir or Path(tempfile.gettempdir())
    directory.mkdir(parents=True, exist_ok=True)
    safe_key = _UNSAFE_FILENAME_RE.sub("-", key).strip("-") or "task"
    path = directory / f"prompt-{safe_key}.txt"
    write_text(path, prompt)
    return path


def prepare_work_prompt(spec_dir: Path, task_id: str, *, prompt_dir: Path | None = None) -> Path:
    return stage_prompt(build_work_prompt(spec_dir, task_id), task_id, prompt_dir=prompt_dir)


def prepare_verification_prompt(
    spec_dir: Path, task_id: str, *, prompt_dir: Path | None = None
) -> Path:
    return stage_prompt(
        build_verification_prompt(spec_dir, task_id), f"test-{task_id}", prompt_dir=prompt_dir
    )
