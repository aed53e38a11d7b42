"""Claude Code agent adapter."""

from __future__ import annotations

import json
import shutil

from usta.config import AgentOptions
from usta.engines.base import EngineBase, EngineResult, StreamEvent


class ClaudeEngine(EngineBase):
    name = "claude"

    def __init__(self, options: AgentOptions | None = None) -> None:
        self.options = options or AgentOptions()
        super().__init__(raw_log=self.options.raw_log)

    def build_cmd(self) -> list[str]:
        # Use resolved path so subprocess gets an absolute path.
        claude = shutil.which("claude") or "claude"
        cmd = [claude, "-p", "--verbose", "--output-format", "stream-json"]
        opts = self.options
        if opts.skip_permissions:
            cmd.append("--dangerously-skip-permissions")
        flags = (
            ("--allowedTools", opts.allowed_tools),
            ("--disallowedTools", opts.disallowed_tools),
            ("--max-turns", opts.max_turns),
            ("--mcp-config", opts.mcp_config),
            ("--system-prompt", opts.system_prompt),
            ("--append-system-prompt", opts.append_system_prompt),
            ("--fallback-model", opts.fallback_model),
            ("--model", opts.model),
        )
        for flag, value in flags:
            if value:
                cmd += [flag, value]
        return cmd

    def parse_line(self, line: str) -> StreamEvent:
        stripped = line.strip()
        if not stripped:
            return StreamEvent()
        try:
            obj = json.loads(stripped)
        except json.JSONDecodeError:
            # Not stream-json (e.g. a plain warning); show it as-is.
            return StreamEvent(text=stripped)
        if not isinstance(obj, dict):
            return StreamEvent()

        match obj.get("type"):
            case "assistant":
                message = obj.get("message")
                content = message.get("content") if isinstance(message, dict) else None
                if not isinstance(content, list):
                    return StreamEvent()
                texts = [
                    block.get("text", "")
                    for block in content
                    if isinstance(block, dict) and block.get("type") == "text"
                ]
                return StreamEvent(text="\n".join(t for t in texts if isinstance(t, str) and t))
            case "result":
                return StreamEvent(result=self._parse_result(obj))
            case _:
                return StreamEvent()

    @staticmethod
    def _parse_result(obj: dict) -> EngineResult:
        result = EngineResult(text=str(obj.get("result") or ""))
        usage = obj.get("usage")
        if not isinstance(usage, dict):
            usage = {}
        try:
            result.input_tokens = int(usage.get("input_tokens", 0))
            result.output_tokens = int(usage.get("output_tokens", 0))
            result.duration_ms = int(obj.get("duration_ms", 0))
        except (TypeError, ValueError):
            pass
        if obj.get("is_error"):
            result.error = result.text or str(obj.get("subtype") or "error")
        return result

    def check_available(self) -> str | None:
        if not shutil.which("claude"):
            return "Claude Code CLI not found. Install with: npm install -g @anthropic-ai/claude-code"
        return None
