"""Task, Section and TaskList data models produced by the checklist parser."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class Task:
    id: str
    title: str = ""
    description: str = ""
    completed: bool = False
    requirements: list[str] = field(default_factory=list)
    subtasks: list[str] = field(default_factory=list)


@dataclass
class Section:
    title: str
    tasks: list[Task] = field(default_factory=list)


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int
    percentage: int


@dataclass
class TaskList:
    """Parsed checklist: sections in document order."""

    sections: list[Section] = field(default_factory=list)

    def all_tasks(self) -> list[Task]:
        return [t for s in self.sections for t in s.tasks]

    def incomplete(self) -> list[Task]:
        return [t for t in self.all_tasks() if not t.completed]

    def next_incomplete(self) -> Task | None:
        for t in self.all_tasks():
            if not t.completed:
                return t
        return None

    def get_task(self, task_id: str) -> Task | None:
        """Return the first task whose id equals *task_id* (ids may repeat)."""
        for t in self.all_tasks():
            if t.id == task_id:
                return t
        return None

    def progress(self) -> Progress:
        tasks = self.all_tasks()
        total = len(tasks)
        completed = sum(1 for t in tasks if t.completed)
        # round() is banker's rounding; percentages round half up.
        percentage = int(100 * completed / total + 0.5) if total else 0
        return Progress(completed=completed, total=total, percentage=percentage)
