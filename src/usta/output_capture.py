"""Observe agent output and decide whether verification succeeded."""

from __future__ import annotations

from typing import Protocol

from usta.prompts import SUCCESS_MARKER


class OutputCapture(Protocol):
    def write(self, data: str) -> None: ...

    def succeeded(self) -> bool: ...

    def clear(self) -> None: ...


class MarkerCapture:
    """Buffer agent output; success means the exact marker was printed.

    Nothing else counts: an agent that *says* it passed without printing
    the marker has failed verification.
    """

    def __init__(self, marker: str = SUCCESS_MARKER) -> None:
        self.marker = marker
        self._chunks: list[str] = []

    def write(self, data: str) -> None:
        self._chunks.append(data)

    def succeeded(self) -> bool:
        return self.marker in self.buffer

    def clear(self) -> None:
        self._chunks = []

    @property
    def buffer(self) -> str:
        return "".join(self._chunks)
