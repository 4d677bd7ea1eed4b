from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import pytest

from fedoradots.command import CmdResult, CommandError
from fedoradots.config import Layout


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    return home


@pytest.fixture
def layout(tmp_path: Path, fake_home: Path) -> Layout:
    source_root = tmp_path / "src"
    source_root.mkdir()
    return Layout(
        source_root=source_root,
        home=fake_home,
        config_root=fake_home / ".config",
        deploy_dir=fake_home / "dotfiles",
    )


@dataclass
class Call:
    argv: list[str]
    cwd: Path | None
    input_text: str | None
    dry_run: bool

    @property
    def line(self) -> str:
        return " ".join(self.argv)


class RecordingCommand:
    """Stands in for ``run_cmd``: records calls, fails on matching command lines."""

    def __init__(self) -> None:
        self.calls: list[Call] = []
        self.fail_on: set[str] = set()
        self.stdout: dict[str, str] = {}

    def __call__(self, argv, *, check=True, cwd=None, input_text=None, dry_run=False):  # noqa: ANN001
        argv_list = [str(arg) for arg in argv]
        call = Call(argv_list, cwd, input_text, dry_run)
        self.calls.append(call)
        for needle in self.fail_on:
            if needle in call.line:
                raise CommandError(argv_list, 1, f"{needle} exploded")
        stdout = next((value for key, value in self.stdout.items() if key in call.line), "")
        return CmdResult(argv=argv_list, returncode=0, stdout=stdout, stderr="")

    def lines(self) -> list[str]:
        return [call.line for call in self.calls]


@pytest.fixture
def recorder() -> RecordingCommand:
    return RecordingCommand()
