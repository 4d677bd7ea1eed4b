from __future__ import annotations

from pathlib import Path

import pytest

from fedoradots.command import CommandError
from fedoradots.errors import DeployError, ProvisionError, StepFailure
from fedoradots.models import ErrorKind, StepStatus
from fedoradots.runner import Step, StepRunner


def _recording_step(name: str, log: list[str], kind: ErrorKind = ErrorKind.PACKAGE, **kwargs) -> Step:
    def action() -> None:
        log.append(name)

    return Step(name=name, action=action, kind=kind, **kwargs)


def _failing_step(name: str, exc: Exception, kind: ErrorKind = ErrorKind.BUILD, **kwargs) -> Step:
    def action() -> None:
        raise exc

    return Step(name=name, action=action, kind=kind, **kwargs)


def test_runs_steps_in_order() -> None:
    log: list[str] = []
    runner = StepRunner([_recording_step(name, log) for name in ("one", "two", "three")])

    result = runner.run()

    assert log == ["one", "two", "three"]
    assert result.ran_steps == ["one", "two", "three"]
    assert result.skipped_steps == []


def test_failure_stops_the_run() -> None:
    log: list[str] = []
    steps = [
        _recording_step("packages", log),
        _failing_step("build:spectrwm", CommandError(["make"], 2, "cc: error")),
        _recording_step("dotfiles", log),
    ]

    with pytest.raises(StepFailure) as excinfo:
        StepRunner(steps).run()

    assert log == ["packages"]
    assert excinfo.value.step == "build:spectrwm"
    assert excinfo.value.kind is ErrorKind.BUILD
    assert "cc: error" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, CommandError)


@pytest.mark.parametrize(
    "exc",
    [OSError("disk full"), DeployError("cancelled"), CommandError(["git", "clone"], 128)],
)
def test_known_errors_carry_step_kind(exc: Exception) -> None:
    with pytest.raises(StepFailure) as excinfo:
        StepRunner([_failing_step("clone:bin", exc, kind=ErrorKind.NETWORK)]).run()

    assert excinfo.value.kind is ErrorKind.NETWORK
    assert "clone:bin" in str(excinfo.value)


def test_unexpected_errors_propagate() -> None:
    with pytest.raises(KeyError):
        StepRunner([_failing_step("broken", KeyError("x"))]).run()


def test_optional_step_failure_continues() -> None:
    log: list[str] = []
    steps = [
        _failing_step("system-link", CommandError(["ln"], 1), required=False),
        _recording_step("packages", log),
    ]

    result = StepRunner(steps).run()

    assert log == ["packages"]
    assert result.results[0].status is StepStatus.SKIPPED
    assert result.results[0].detail.startswith("failed:")


def test_skip_if_exists_does_not_run_action(tmp_path: Path) -> None:
    log: list[str] = []
    dest = tmp_path / "spectrwm"
    dest.mkdir()

    result = StepRunner([_recording_step("clone:spectrwm", log, skip_if_exists=dest)]).run()

    assert log == []
    assert result.skipped_steps == ["clone:spectrwm"]


def test_skip_if_dir_ignores_a_plain_file(tmp_path: Path) -> None:
    log: list[str] = []
    existing = tmp_path / "spectrwm"
    existing.mkdir()
    stray = tmp_path / "xtitle"
    stray.write_text("not a checkout\n")
    steps = [
        _recording_step("clone:spectrwm", log, skip_if_dir=existing),
        _recording_step("clone:xtitle", log, skip_if_dir=stray),
    ]

    result = StepRunner(steps).run()

    assert log == ["clone:xtitle"]
    assert result.skipped_steps == ["clone:spectrwm"]
    assert result.ran_steps == ["clone:xtitle"]


def test_skip_unless_exists_skips_optional_input(tmp_path: Path) -> None:
    log: list[str] = []
    present = tmp_path / "present"
    present.mkdir()
    steps = [
        _recording_step("local-package:dzen2.rpm", log, skip_unless_exists=(tmp_path / "dzen2.rpm",)),
        _recording_step("assets:fonts", log, skip_unless_exists=(present,)),
    ]

    result = StepRunner(steps).run()

    assert log == ["assets:fonts"]
    assert result.results[0].status is StepStatus.SKIPPED
    assert "dzen2.rpm" in result.results[0].detail


def test_missing_required_directory_is_fatal(tmp_path: Path) -> None:
    log: list[str] = []
    missing = tmp_path / "spectrwm" / "linux"
    steps = [
        _recording_step("build:spectrwm", log, kind=ErrorKind.BUILD, requires=(missing,)),
        _recording_step("dotfiles", log),
    ]

    with pytest.raises(StepFailure) as excinfo:
        StepRunner(steps).run()

    assert log == []
    assert excinfo.value.kind is ErrorKind.MISSING_DIRECTORY
    assert str(missing) in excinfo.value.message


def test_missing_required_directory_only_warns_in_dry_run(tmp_path: Path) -> None:
    log: list[str] = []
    step = _recording_step("build:xtitle", log, requires=(tmp_path / "xtitle",))

    result = StepRunner([step]).run(dry_run=True)

    assert log == ["build:xtitle"]
    assert result.ran_steps == ["build:xtitle"]


def test_start_at_and_stop_after_select_a_slice() -> None:
    log: list[str] = []
    runner = StepRunner([_recording_step(name, log) for name in ("a", "b", "c", "d")])

    result = runner.run(start_at="b", stop_after="c")

    assert log == ["b", "c"]
    assert result.ran_steps == ["b", "c"]


@pytest.mark.parametrize(
    ("start_at", "stop_after"),
    [("missing", None), (None, "missing"), ("c", "a")],
)
def test_invalid_selection(start_at: str | None, stop_after: str | None) -> None:
    runner = StepRunner([_recording_step(name, []) for name in ("a", "b", "c")])

    with pytest.raises(ProvisionError):
        runner.run(start_at=start_at, stop_after=stop_after)


def test_duplicate_step_names_rejected() -> None:
    with pytest.raises(ProvisionError, match="Duplicate"):
        StepRunner([_recording_step("a", []), _recording_step("a", [])])
