"""Tests for usta.spec.parser — checklist text to sections and tasks."""

from __future__ import annotations

import pytest

from usta.errors import MalformedSpecError
from usta.spec.parser import iter_task_lines, parse_tasks, split_lines, task_id_from_text, task_title


# ── Basic structure ──────────────────────────────────────────────────


class TestParseStructure:
    def test_single_task_with_subtasks_and_requirements(self) -> None:
        doc = "## A\n\n- [ ] 1. Do X\n  - sub one\n  - sub two\n  _Requirements: 1.1, 1.2_\n"
        tl = parse_tasks(doc)

        assert [s.title for s in tl.sections] == ["A"]
        assert len(tl.sections[0].tasks) == 1
        task = tl.sections[0].tasks[0]
        assert task.id == "1"
        assert task.title == "1. Do X"
        assert task.completed is False
        assert task.subtasks == ["sub one", "sub two"]
        assert task.requirements == ["1.1", "1.2"]
        assert task.description == ""

    def test_tasks_flatten_in_document_order(self, spec_dir) -> None:
        from usta.io_utils import read_text

        tl = parse_tasks(read_text(spec_dir / "tasks.md"))
        assert [t.id for t in tl.all_tasks()] == ["1", "2", "3", "4"]
        assert [s.title for s in tl.sections] == ["Setup", "Features"]
        assert [len(s.tasks) for s in tl.sections] == [2, 2]

    def test_description_lines_joined_with_newline(self) -> None:
        doc = "## S\n- [ ] 1. Task\n  First line.\n\n  Second line.\n"
        task = parse_tasks(doc).all_tasks()[0]
        assert task.description == "First line.\nSecond line."

    def test_underscore_bullet_is_not_a_subtask(self) -> None:
        doc = "## S\n- [ ] 1. Task\n  - _note in italics_\n"
        task = parse_tasks(doc).all_tasks()[0]
        assert task.subtasks == []
        assert task.description == "- _note in italics_"

    def test_task_closed_by_next_section(self) -> None:
        doc = "## One\n- [ ] 1. First\n## Two\n  stray indented line\n- [ ] 2. Second\n"
        tl = parse_tasks(doc)
        assert [t.id for t in tl.sections[0].tasks] == ["1"]
        assert [t.id for t in tl.sections[1].tasks] == ["2"]
        assert tl.sections[0].tasks[0].description == ""

    def test_empty_document(self) -> None:
        tl = parse_tasks("")
        assert tl.sections == []
        assert tl.all_tasks() == []

    def test_crlf_line_endings(self) -> None:
        doc = "## S\r\n- [ ] 1. Task\r\n  - sub\r\n"
        task = parse_tasks(doc).all_tasks()[0]
        assert task.title == "1. Task"
        assert task.subtasks == ["sub"]


# ── Ids and checkboxes ───────────────────────────────────────────────


class TestIdsAndCheckboxes:
    def test_id_is_first_word_without_number_prefix(self) -> None:
        task = parse_tasks("## S\n- [ ] Setup the database\n").all_tasks()[0]
        assert task.id == "Setup"
        assert task.title == "Setup the database"

    def test_dotted_number_is_not_a_prefix(self) -> None:
        task = parse_tasks("## S\n- [ ] 2.1 Nested numbering\n").all_tasks()[0]
        assert task.id == "2.1"

    @pytest.mark.parametrize(
        ("box", "completed"),
        [("[ ]", False), ("[  ]", False), ("[   ]", False), ("[x]", True), ("[ x ]", True)],
    )
    def test_checkbox_whitespace_tolerated(self, box: str, completed: bool) -> None:
        task = parse_tasks(f"## S\n- {box} 1. Task\n").all_tasks()[0]
        assert task.completed is completed

    def test_uppercase_x_is_not_a_task(self) -> None:
        assert parse_tasks("## S\n- [X] 1. Task\n").all_tasks() == []

    def test_task_id_from_text(self) -> None:
        assert task_id_from_text("12. Build it") == "12"
        assert task_id_from_text("Build it") == "Build"

    @pytest.mark.parametrize("sep", ["\x0b", "\x0c", "\x1c", "\x85", "\u2028", "\u2029"])
    def test_only_line_feeds_split_lines(self, sep: str) -> None:
        doc = f"## S\n- [ ] 1. Task{sep}- [ ] 2. Not a line of its own\n"
        tasks = parse_tasks(doc).all_tasks()
        assert [t.id for t in tasks] == ["1"]
        assert tasks[0].title == f"1. Task{sep}- [ ] 2. Not a line of its own"

    def test_task_lines_match_parsed_tasks(self) -> None:
        doc = "- [ ] 0. Before\n## S\n- [ ] 1. A\n- [] 2. Bad\n  - [ ] 3. Sub\n- [x] 4. Done\n"
        found = [(i, task_title(m)) for i, m in iter_task_lines(split_lines(doc))]
        assert found == [(2, "1. A"), (5, "4. Done")]
        assert [t.title for t in parse_tasks(doc).all_tasks()] == ["1. A", "4. Done"]


# ── Lenient vs strict ────────────────────────────────────────────────


class TestStrictMode:
    DOC = "# Plan\n\nSome intro text.\n\n## S\n- [ ] 1. Task\n"

    def test_lenient_skips_unknown_lines(self) -> None:
        tl = parse_tasks(self.DOC)
        assert [t.id for t in tl.all_tasks()] == ["1"]

    def test_strict_reports_line_number(self) -> None:
        with pytest.raises(MalformedSpecError) as exc_info:
            parse_tasks(self.DOC, strict=True)
        assert exc_info.value.line_no == 3

    def test_strict_accepts_well_formed_document(self, spec_dir) -> None:
        from usta.io_utils import read_text

        tl = parse_tasks(read_text(spec_dir / "tasks.md"), strict=True)
        assert len(tl.all_tasks()) == 4

    def test_task_before_any_section(self) -> None:
        doc = "- [ ] 1. Orphan\n## S\n- [ ] 2. Kept\n"
        assert [t.id for t in parse_tasks(doc).all_tasks()] == ["2"]
        with pytest.raises(MalformedSpecError, match="outside of any section"):
            parse_tasks(doc, strict=True)

    def test_strict_rejects_broken_checkbox(self) -> None:
        with pytest.raises(MalformedSpecError, match="unrecognised checkbox"):
            parse_tasks("## S\n- [ ]\n", strict=True)
