"""Wrappers for text file I/O with consistent encoding (UTF-8).

The checklist is rewritten in place, so reads and writes here can be told
to leave line endings alone (``newline=""``).
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

PathLike = Path | str


def read_text(path: PathLike, *, newline: str | None = None, errors: str = "strict") -> str:
    """Read path as UTF-8 text. ``newline=""`` keeps ``\\r\\n`` untranslated."""
    with open(path, encoding="utf-8", errors=errors, newline=newline) as f:
        return f.read()


def write_text(path: PathLike, text: str, *, newline: str | None = None) -> None:
    """Write text to path with UTF-8 encoding."""
    with open(path, "w", encoding="utf-8", newline=newline) as f:
        f.write(text)


def replace_text(path: PathLike, text: str) -> None:
    """Atomically replace the contents of *path*, writing *text* verbatim.

    The new content goes to a sibling temp file first and is moved over the
    original, so a crash never leaves a half-written file behind.
    """
    p = Path(path)
    fd, tmp = tempfile.mkstemp(prefix=f".{p.name}.", dir=p.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        if p.exists():
            shutil.copymode(p, tmp)
        os.replace(tmp, p)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
