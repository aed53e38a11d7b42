"""Exception hierarchy shared by the parser, the runner and the CLI."""

from __future__ import annotations


class UstaError(Exception):
    """Base class for all errors raised by usta."""


class ConfigError(UstaError):
    """Required run configuration is missing or invalid."""


class InvalidInputError(UstaError):
    """A required argument was not supplied."""


class SpecNotFoundError(UstaError):
    """No spec directory matched the requested name."""


class AmbiguousSpecError(UstaError):
    """More than one spec directory matched the requested name."""

    def __init__(self, name: str, candidates: list[str]) -> None:
        self.name = name
        self.candidates = candidates
        super().__init__(f"Multiple specs found matching '{name}': {', '.join(candidates)}")


class MalformedSpecError(UstaError):
    """Strict parsing hit a line it does not understand."""

    def __init__(self, line_no: int, line: str, reason: str) -> None:
        self.line_no = line_no
        self.line = line
        super().__init__(f"line {line_no}: {reason}: {line!r}")


class TaskNotFoundError(UstaError):
    """A task id did not resolve to a task in the spec."""


class TaskNotMarkableError(UstaError):
    """No unchecked checkbox line matched the task id."""


class AgentError(UstaError):
    """The coding agent could not be started or exited with an error."""


class GitError(UstaError):
    """A git operation the runner depends on failed."""


class GitHubError(UstaError):
    """The GitHub API rejected or could not serve a request."""
