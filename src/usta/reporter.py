"""Progress reporter: mirror task status and publish it as a PR comment.

The runner drives every change through :meth:`ProgressReporter.set_task_status`
and :meth:`ProgressReporter.set_overall_status`; the reporter never calls back
into the runner. Publishing is best effort: failures are logged, never raised.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

import httpx

from usta import log
from usta.config import MAX_ATTEMPTS
from usta.errors import GitHubError
from usta.pr_context import PRContext
from usta.spec.model import Task


class TaskStatus(str, Enum):
    PENDING = "pending"
    WORKING = "working"
    TESTING = "testing"
    COMPLETED = "completed"
    FAILED = "failed"


class OverallStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_TASK_BADGES: dict[TaskStatus, tuple[str, str]] = {
    TaskStatus.PENDING: ("⏳", "Pending"),
    TaskStatus.WORKING: ("🔄", "Working"),
    TaskStatus.TESTING: ("🧪", "Testing"),
    TaskStatus.COMPLETED: ("✅", "Completed"),
    TaskStatus.FAILED: ("❌", "Failed"),
}

_OVERALL_BADGES: dict[OverallStatus, tuple[str, str]] = {
    OverallStatus.RUNNING: ("🔄", "Running"),
    OverallStatus.COMPLETED: ("✅", "Completed Successfully"),
    OverallStatus.FAILED: ("❌", "Failed"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_duration(seconds: float) -> str:
    seconds = max(int(seconds), 0)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    return f"{minutes}m {secs}s"


@dataclass
class TaskProgress:
    task_id: str
    title: str
    status: TaskStatus = TaskStatus.PENDING
    start_time: datetime | None = None
    end_time: datetime | None = None
    attempt: int = 1
    completed_on_attempt: int | None = None


@dataclass
class ReportState:
    spec_name: str
    tasks: list[TaskProgress] = field(default_factory=list)
    overall_status: OverallStatus = OverallStatus.RUNNING
    start_time: datetime = field(default_factory=_utcnow)
    end_time: datetime | None = None


class CommentSink(Protocol):
    def update_comment(self, comment_id: str, body: str) -> None: ...


class ProgressReporter:
    def __init__(
        self,
        context: PRContext,
        spec_name: str,
        tasks: list[TaskProgress] | None = None,
        *,
        client: CommentSink | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.context = context
        self.client = client
        self.max_attempts = max_attempts
        self._clock = clock
        self._lock = threading.Lock()
        self._periodic: _PeriodicPublisher | None = None
        self.state = ReportState(spec_name=spec_name, tasks=list(tasks or []), start_time=clock())

    @classmethod
    def create(
        cls,
        context: PRContext,
        spec_name: str,
        tasks: list[Task],
        *,
        client: CommentSink | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> ProgressReporter:
        """Seed one entry per task and publish the initial report."""
        progress = [
            TaskProgress(
                task_id=t.id,
                title=t.title,
                status=TaskStatus.COMPLETED if t.completed else TaskStatus.PENDING,
            )
            for t in tasks
        ]
        reporter = cls(context, spec_name, progress, client=client, max_attempts=max_attempts, clock=clock)
        if context.is_enabled:
            reporter.publish()
        return reporter

    # ── transitions ──────────────────────────────────────────────

    def _find(self, task_id: str) -> TaskProgress | None:
        for t in self.state.tasks:
            if t.task_id == task_id:
                return t
        return None

    def get(self, task_id: str) -> TaskProgress | None:
        with self._lock:
            return self._find(task_id)

    def set_task_status(self, task_id: str, status: TaskStatus, attempt: int | None = None) -> None:
        """Update one task. Unknown ids are ignored."""
        with self._lock:
            task = self._find(task_id)
            if task is None:
                log.debug(f"Reporter: unknown task id {task_id}")
                return
            now = self._clock()
            task.status = status
            if attempt:
                task.attempt = attempt
            if status is TaskStatus.WORKING and task.start_time is None:
                task.start_time = now
            elif status is TaskStatus.COMPLETED:
                if task.end_time is None:
                    task.end_time = now
                task.completed_on_attempt = task.attempt
            elif status is TaskStatus.FAILED and task.end_time is None:
                task.end_time = now

    def set_overall_status(self, status: OverallStatus) -> None:
        with self._lock:
            self.state.overall_status = status
            if status is not OverallStatus.RUNNING and self.state.end_time is None:
                self.state.end_time = self._clock()

    @property
    def overall_status(self) -> OverallStatus:
        return self.state.overall_status

    # ── rendering ────────────────────────────────────────────────

    def _task_line(self, index: int, task: TaskProgress, now: datetime) -> str:
        emoji, label = _TASK_BADGES[task.status]
        detail = ""
        if task.status in (TaskStatus.WORKING, TaskStatus.TESTING):
            detail = f" (attempt {task.attempt}/{self.max_attempts})"
        elif task.status is TaskStatus.COMPLETED and task.completed_on_attempt:
            detail = f" (attempt {task.completed_on_attempt}"
            if task.start_time:
                detail += f", {format_duration(((task.end_time or now) - task.start_time).total_seconds())}"
            detail += ")"
        elif task.status is TaskStatus.FAILED:
            detail = f" after {task.attempt} attempt{'s' if task.attempt != 1 else ''}"
            if task.start_time:
                detail += f" ({format_duration(((task.end_time or now) - task.start_time).total_seconds())})"
        return f"{index}. {emoji} **{task.title}** - {label}{detail}"

    def render(self) -> str:
        with self._lock:
            return self._render()

    def _render(self) -> str:
        state = self.state
        now = self._clock()
        emoji, label = _OVERALL_BADGES[state.overall_status]
        parts = [
            "🤖 **Usta is working on this spec.**",
            "",
            f"**Spec:** `{state.spec_name}`",
            f"**Status:** {emoji} **{label}**",
            "",
        ]

        tasks = state.tasks
        if tasks:
            parts += ["## Task Progress", ""]
            parts += [self._task_line(i, t, now) for i, t in enumerate(tasks, start=1)]
            parts.append("")

            done = sum(1 for t in tasks if t.status is TaskStatus.COMPLETED)
            parts += [f"**Progress:** {done}/{len(tasks)} tasks completed", ""]

            this_run = [t for t in tasks if t.completed_on_attempt and t.start_time]
            if this_run:
                first = sum(1 for t in this_run if t.completed_on_attempt == 1)
                retries = sum(t.completed_on_attempt - 1 for t in this_run if t.completed_on_attempt)
                rate = round(100 * first / len(this_run))
                parts += [
                    f"**First-attempt success:** {first}/{len(this_run)} ({rate}%)"
                    f" · {retries} retr{'y' if retries == 1 else 'ies'}",
                    "",
                ]

        elapsed = format_duration(((state.end_time or now) - state.start_time).total_seconds())
        if state.overall_status is OverallStatus.COMPLETED:
            parts += [
                "🎉 All tasks have been completed and changes have been pushed to this PR branch.",
                "",
                f"**Duration:** {elapsed}",
                "",
                "**Next steps:**",
                "- Review the changes in this PR",
                "- Run any additional tests if needed",
                "- Merge when ready",
            ]
        elif state.overall_status is OverallStatus.FAILED:
            if self.context.run_url:
                parts.append(f"💥 Execution failed. Check the [workflow logs]({self.context.run_url}) for details.")
            else:
                parts.append("💥 Execution failed. Check the workflow logs for details.")
            parts += ["", f"**Duration:** {elapsed}"]
        else:
            parts.append(f"**Running for:** {elapsed}")

        parts += ["", "---", "*This comment is updated automatically as tasks progress.*"]
        return "\n".join(parts)

    # ── publishing ───────────────────────────────────────────────

    def publish(self) -> None:
        """Push the rendered report to the PR comment, if there is one."""
        with self._lock:
            self._publish_locked()

    def _publish_locked(self) -> None:
        comment_id = self.context.comment_id
        if not self.context.is_enabled or not comment_id:
            return
        if self.client is None:
            log.debug("No comment client configured; skipping progress update")
            return
        body = self._render()
        try:
            self.client.update_comment(comment_id, body)
        except (GitHubError, httpx.HTTPError, OSError) as exc:
            log.warn(f"Failed to update progress comment: {exc}")
            return
        log.debug("Updated progress comment")

    def _publish_if_running(self) -> None:
        with self._lock:
            if self.state.overall_status is OverallStatus.RUNNING:
                self._publish_locked()

    def start_periodic(self, interval: float) -> None:
        """Republish every *interval* seconds while the run is in progress."""
        if interval <= 0 or self._periodic is not None:
            return
        if not self.context.is_enabled or not self.context.comment_id:
            return
        self._periodic = _PeriodicPublisher(self._publish_if_running, interval)
        self._periodic.start()

    def stop_periodic(self) -> None:
        periodic, self._periodic = self._periodic, None
        if periodic is not None:
            periodic.stop()


class _PeriodicPublisher(threading.Thread):
    def __init__(self, publish: Callable[[], None], interval: float) -> None:
        super().__init__(name="usta-report", daemon=True)
        self._publish = publish
        self._interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            self._publish()

    def stop(self) -> None:
        self._stopped.set()
        if self is not threading.current_thread():
            self.join(timeout=5)
