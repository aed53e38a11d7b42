"""Base class for coding-agent adapters."""

from __future__ import annotations

import shutil
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from usta import log
from usta.errors import AgentError
from usta.io_utils import read_text
from usta.output_capture import OutputCapture


@dataclass
class EngineResult:
    """Uniform result from one agent invocation."""

    text: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    duration_ms: int = 0
    error: str = ""
    return_code: int = 0


@dataclass
class StreamEvent:
    """What one line of agent output contributes.

    ``text`` is shown to the user and fed to the output capture;
    ``result`` is set once, by the final summary event.
    """

    text: str = ""
    result: EngineResult | None = None


class EngineBase(ABC):
    """Abstract agent adapter. Subclasses implement ``build_cmd`` and ``parse_line``."""

    name: str = "base"

    def __init__(self, *, raw_log: bool = False) -> None:
        self.raw_log = raw_log

    @abstractmethod
    def build_cmd(self) -> list[str]:
        """Return the CLI command list; the prompt is sent on stdin."""
        ...

    @abstractmethod
    def parse_line(self, line: str) -> StreamEvent:
        """Interpret a single line of streamed stdout."""
        ...

    def check_available(self) -> str | None:
        """Return an error message if the agent CLI is not available, else None."""
        cmd_name = self.build_cmd()[0]
        if not shutil.which(cmd_name):
            return f"{cmd_name} not found in PATH"
        return None

    def run(
        self,
        prompt_file: Path,
        *,
        capture: OutputCapture | None = None,
        cwd: Path | None = None,
    ) -> EngineResult:
        """Run the agent on the prompt in *prompt_file*, streaming its output.

        Text extracted from the stream is echoed to the console and written
        to *capture*. Raises :class:`AgentError` if the CLI cannot be started.
        """
        prompt = read_text(prompt_file)
        cmd = self.build_cmd()
        start = time.monotonic()

        # stderr goes to a spool file so a chatty agent cannot block on a full pipe.
        stderr_fh = tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace")
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=stderr_fh,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            stderr_fh.close()
            raise AgentError(f"{cmd[0]} not found") from exc

        result = EngineResult()
        try:
            assert proc.stdin is not None and proc.stdout is not None
            try:
                proc.stdin.write(prompt)
                proc.stdin.close()
            except OSError as exc:
                log.debug(f"Could not write prompt to {self.name}: {exc}")

            for line in proc.stdout:
                if self.raw_log:
                    log.console.out(line.rstrip("\n"), highlight=False)
                event = self.parse_line(line)
                if event.text:
                    if not self.raw_log:
                        log.console.out(event.text, highlight=False)
                    if capture is not None:
                        capture.write(event.text + "\n")
                if event.result is not None:
                    result = event.result
                    if capture is not None and result.text:
                        capture.write(result.text + "\n")
            proc.wait()
            stderr_fh.seek(0)
            stderr = stderr_fh.read()
        except BaseException:
            # the agent must not outlive the attempt that started it
            self._terminate_process(proc)
            raise
        finally:
            stderr_fh.close()

        result.return_code = proc.returncode
        if not result.duration_ms:
            result.duration_ms = int((time.monotonic() - start) * 1000)
        if proc.returncode != 0 and not result.error:
            stderr = (stderr or "").strip()
            result.error = stderr.splitlines()[0] if stderr else f"exit code {proc.returncode}"
        return result

    @staticmethod
    def _terminate_process(proc: subprocess.Popen[str]) -> None:
        """Terminate a subprocess promptly (best effort)."""
        try:
            if proc.poll() is None:
                proc.terminate()
            proc.wait(timeout=2)
        except (OSError, subprocess.TimeoutExpired):
            try:
                proc.kill()
            except OSError:
                pass
