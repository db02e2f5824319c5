from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


class FakeTool:
    """Stand-in for subprocess.run that answers by command prefix.

    `responses` maps a command prefix (without the executable) to
    `(exit_code, stdout, stderr)`, a list of such tuples consumed in order,
    an exception instance to raise, or a callable taking argv and returning
    one of those.
    """

    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls: list[list[str]] = []
        self.options: list[dict] = []

    def commands(self) -> list[str]:
        return [" ".join(argv[1:]) for argv in self.calls]

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        self.options.append(kwargs)
        command = " ".join(argv[1:])
        for prefix in sorted(self.responses, key=len, reverse=True):
            if not command.startswith(prefix):
                continue
            answer = self.responses[prefix]
            if isinstance(answer, list):
                answer = answer.pop(0) if len(answer) > 1 else answer[0]
            if callable(answer):
                answer = answer(argv)
            if isinstance(answer, BaseException):
                raise answer
            code, stdout, stderr = answer
            return subprocess.CompletedProcess(argv, code, stdout, stderr)
        return subprocess.CompletedProcess(argv, 1, "", f"unknown command: {command}")


@pytest.fixture
def fake_tool(monkeypatch):
    """Install a FakeTool as subprocess.run and return it."""

    def _install(responses):
        tool = FakeTool(responses)
        monkeypatch.setattr(subprocess, "run", tool)
        return tool

    return _install
