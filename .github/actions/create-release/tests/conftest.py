"""Fixtures for the ``create-release`` action tests."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import pytest
from syspath_hack import prepend_to_syspath

SCRIPTS_DIR = Path(__file__).resolve().parent.parent / "scripts"
prepend_to_syspath(SCRIPTS_DIR)
prepend_to_syspath(Path(__file__).resolve().parent)

from _fakes import FakeGitHub, FixedRandom, RecordingSleep

if typ.TYPE_CHECKING:
    import collections.abc as cabc


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Return an empty in-memory GitHub double."""
    return FakeGitHub()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Return a sleep replacement that records requested delays."""
    return RecordingSleep()


@pytest.fixture
def fixed_random() -> FixedRandom:
    """Return a jitter source fixed at 0.5."""
    return FixedRandom(0.5)


@pytest.fixture
def github_output(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> cabc.Iterator[Path]:
    """Point ``GITHUB_OUTPUT`` and ``GITHUB_STEP_SUMMARY`` at temporary files."""
    output_file = tmp_path / "outputs" / "github_output"
    summary_file = tmp_path / "outputs" / "step_summary"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
    monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary_file))
    yield output_file
