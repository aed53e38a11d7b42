"""Shared fixtures for usta tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use usta.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from usta.io_utils import write_text
from usta.spec.model import Task

SAMPLE_TASKS = """# Implementation Plan

## Setup

- [x] 1. Create project skeleton
  Lay out the package.
  - add pyproject
  _Requirements: 1.1_

- [ ] 2. Add configuration loader
  Read settings from the environment.
  - parse env vars
  - validate values
  _Requirements: 2.1, 2.2_

## Features

- [ ] 3. Implement the API client
- [  ] 4. Wire the CLI
"""


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a minimal git repo for testing."""
    subprocess.run(["git", "init"], cwd=tmp_path, capture_output=True, check=True)
    subprocess.run(
        ["git", "config", "user.name", "Test"], cwd=tmp_path, capture_output=True
    )
    subprocess.run(
        ["git", "config", "user.email", "test@test"], cwd=tmp_path, capture_output=True
    )
    write_text(tmp_path / "README.md", "# Test")
    subprocess.run(["git", "add", "README.md"], cwd=tmp_path, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial"], cwd=tmp_path, capture_output=True
    )
    return tmp_path


def _write_spec(root: Path, name: str = "my-spec", tasks: str = SAMPLE_TASKS) -> Path:
    spec_dir = root / name
    spec_dir.mkdir(parents=True, exist_ok=True)
    write_text(spec_dir / "tasks.md", tasks)
    return spec_dir


@pytest.fixture
def write_spec():
    """Factory fixture: ``write_spec(root, name, tasks_md)`` -> spec dir."""
    return _write_spec


@pytest.fixture
def spec_dir(tmp_path: Path) -> Path:
    """A spec directory holding SAMPLE_TASKS."""
    return _write_spec(tmp_path)


def _make_task(id: str, title: str = "", completed: bool = False) -> Task:
    return Task(id=id, title=title or f"{id}. Task {id}", completed=completed)


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task
