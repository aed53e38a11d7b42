"""Runner: drive the agent through each task with bounded retries and rollback.

Per task::

    pending -> working -> testing -> completed
                  ^           |
                  +-- retry --+-> failed (after MAX_ATTEMPTS)

Every attempt starts from a committed tree; a failed attempt is rolled back
before the next one. A task that exhausts its attempts stops the whole run,
since later tasks may build on it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from usta import log
from usta.config import MAX_ATTEMPTS, Config
from usta.engines.base import EngineBase
from usta.errors import AgentError, GitError
from usta.output_capture import MarkerCapture
from usta.prompts import prepare_verification_prompt, prepare_work_prompt
from usta.reporter import OverallStatus, ProgressReporter, TaskStatus
from usta.spec.io import mark_task_complete, next_task
from usta.spec.model import Task


class Gateway(Protocol):
    def commit_and_push(self, message: str) -> bool: ...

    def rollback(self) -> bool: ...


class Runner:
    """Sequential task loop over one spec directory."""

    def __init__(
        self,
        cfg: Config,
        spec_dir: Path,
        engine: EngineBase,
        git: Gateway,
        reporter: ProgressReporter,
        *,
        cwd: Path | None = None,
    ) -> None:
        self.cfg = cfg
        self.spec_dir = spec_dir
        self.engine = engine
        self.git = git
        self.reporter = reporter
        self.cwd = cwd
        self.max_attempts = min(max(cfg.max_attempts, 1), MAX_ATTEMPTS)
        self.reporter.max_attempts = self.max_attempts
        self.prompt_dir = Path(cfg.prompt_dir) if cfg.prompt_dir else None
        self.completed_task_ids: list[str] = []
        self.failed_task_id: str | None = None
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    def run(self) -> bool:
        """Execute every incomplete task in order. Returns ``True`` on success."""
        self.reporter.start_periodic(self.cfg.report_interval)
        try:
            task = next_task(self.spec_dir, strict=self.cfg.strict)
            while task is not None:
                log.info(f"Next task: {task.title}")
                if not self._run_task(task):
                    self._finish(OverallStatus.FAILED)
                    return False

                mark_task_complete(self.spec_dir, task.id)
                self.completed_task_ids.append(task.id)
                task = next_task(self.spec_dir, strict=self.cfg.strict)

            if self.completed_task_ids:
                self._commit_checklist()
        except BaseException:
            self._finish(OverallStatus.FAILED)
            raise

        self._finish(OverallStatus.COMPLETED)
        return True

    def _commit_checklist(self) -> None:
        """Commit the last checkbox flip, which no later task will pick up."""
        if not self.git.commit_and_push(f"Update task checklist: {self.spec_dir.name}"):
            log.warn("Could not commit the updated task checklist")

    def _finish(self, status: OverallStatus) -> None:
        self.reporter.stop_periodic()
        self.reporter.set_overall_status(status)
        self.reporter.publish()

    def _transition(self, task: Task, status: TaskStatus, attempt: int) -> None:
        self.reporter.set_task_status(task.id, status, attempt)
        self.reporter.publish()

    # ── per-task state machine ───────────────────────────────────

    def _run_task(self, task: Task) -> bool:
        if not self.git.commit_and_push(f"Before starting task: {task.title}"):
            log.warn("Could not commit pre-existing changes; continuing")

        for attempt in range(1, self.max_attempts + 1):
            with log.group(f"Task {task.id}: attempt {attempt}/{self.max_attempts}"):
                ok = self._attempt(task, attempt)
            if ok:
                self._transition(task, TaskStatus.COMPLETED, attempt)
                log.success(f"Task {task.title} completed on attempt {attempt}")
                return True

            if not self.git.rollback():
                log.error("Rollback failed; the next attempt may start from a dirty tree")
            if attempt < self.max_attempts:
                log.warn(f"Retrying task {task.title} (attempt {attempt + 1}/{self.max_attempts})")

        self.failed_task_id = task.id
        self.reporter.set_task_status(task.id, TaskStatus.FAILED, self.max_attempts)
        log.error(f"Task {task.title} failed after {self.max_attempts} attempts")
        return False

    def _attempt(self, task: Task, attempt: int) -> bool:
        """One work -> verify -> commit cycle. Any exception fails the attempt."""
        try:
            self._transition(task, TaskStatus.WORKING, attempt)
            log.info(f"Running task {task.title}...")
            self._work(task)

            self._transition(task, TaskStatus.TESTING, attempt)
            log.info(f"Testing task {task.title}...")
            if not self._verify(task):
                log.warn(f"Verification did not confirm task {task.title}")
                return False

            if not self.git.commit_and_push(f"Complete task: {task.title}"):
                raise GitError(f"could not commit task {task.title}")
            return True
        except Exception as exc:
            log.error(f"Attempt {attempt} for task {task.title} failed: {exc}")
            return False

    def _work(self, task: Task) -> None:
        prompt_file = prepare_work_prompt(self.spec_dir, task.id, prompt_dir=self.prompt_dir)
        result = self.engine.run(prompt_file, cwd=self.cwd)
        self._accumulate(result.input_tokens, result.output_tokens)
        if result.return_code != 0:
            raise AgentError(result.error or f"agent exited with code {result.return_code}")

    def _verify(self, task: Task) -> bool:
        prompt_file = prepare_verification_prompt(self.spec_dir, task.id, prompt_dir=self.prompt_dir)
        capture = MarkerCapture()
        result = self.engine.run(prompt_file, capture=capture, cwd=self.cwd)
        self._accumulate(result.input_tokens, result.output_tokens)
        return capture.succeeded()

    def _accumulate(self, input_tokens: int, output_tokens: int) -> None:
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
