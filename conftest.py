"""Pytest configuration shared by the action test suites."""

from __future__ import annotations

import os

import pytest

_WORKFLOW_FILE_VARIABLES = ("GITHUB_OUTPUT", "GITHUB_STEP_SUMMARY")


@pytest.fixture(autouse=True)
def isolate_workflow_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide the runner's output files and ``INPUT_*`` variables from tests.

    Tests executed inside GitHub Actions would otherwise append to the real
    job outputs or pick up the inputs of the workflow running them.
    """
    for name in _WORKFLOW_FILE_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("INPUT_"):
            monkeypatch.delenv(name, raising=False)
