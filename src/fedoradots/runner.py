"""Sequential, fail-fast execution of provisioning steps."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence

from .command import CommandError
from .errors import ProvisionError, StepFailure
from .models import ErrorKind, PipelineResult, StepResult, StepStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """One named provisioning action.

    ``requires`` lists directories that must exist before the step runs.
    ``skip_if_exists`` marks the step as already satisfied, as does an
    existing ``skip_if_dir`` directory (a file there does not count). Any
    missing ``skip_unless_exists`` path makes the step optional and it is
    skipped.
    A failing step with ``required`` unset is logged and the run continues.
    """

    name: str
    action: Callable[[], Optional[str]]
    kind: ErrorKind
    requires: tuple[Path, ...] = ()
    skip_if_exists: Path | None = None
    skip_if_dir: Path | None = None
    skip_unless_exists: tuple[Path, ...] = ()
    required: bool = True


class StepRunner:
    """Runs steps in order and stops at the first failure."""

    def __init__(self, steps: Sequence[Step]) -> None:
        names = [step.name for step in steps]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ProvisionError(f"Duplicate step names: {', '.join(duplicates)}")
        self.steps = list(steps)

    def select(self, *, start_at: str | None = None, stop_after: str | None = None) -> list[Step]:
        names = [step.name for step in self.steps]
        for label, value in (("start", start_at), ("stop", stop_after)):
            if value is not None and value not in names:
                raise ProvisionError(f"Unknown {label} step '{value}'")

        begin = names.index(start_at) if start_at is not None else 0
        end = names.index(stop_after) + 1 if stop_after is not None else len(names)
        if end <= begin:
            raise ProvisionError(f"Step '{stop_after}' comes before '{start_at}'")
        return self.steps[begin:end]

    def run(
        self,
        *,
        start_at: str | None = None,
        stop_after: str | None = None,
        dry_run: bool = False,
    ) -> PipelineResult:
        results: list[StepResult] = []

        for step in self.select(start_at=start_at, stop_after=stop_after):
            results.append(self._run_step(step, dry_run=dry_run))

        return PipelineResult(results=tuple(results))

    def _run_step(self, step: Step, *, dry_run: bool) -> StepResult:
        if step.skip_if_exists is not None and step.skip_if_exists.exists():
            logger.info("%s already exists, skipping %s", step.skip_if_exists, step.name)
            return StepResult(step.name, StepStatus.SKIPPED, f"{step.skip_if_exists} already exists")

        if step.skip_if_dir is not None and step.skip_if_dir.is_dir():
            logger.info("%s already exists, skipping %s", step.skip_if_dir, step.name)
            return StepResult(step.name, StepStatus.SKIPPED, f"{step.skip_if_dir} already exists")

        for path in step.skip_unless_exists:
            if not path.exists():
                logger.warning("%s not found, skipping %s", path, step.name)
                return StepResult(step.name, StepStatus.SKIPPED, f"{path} not found")

        for directory in step.requires:
            if directory.is_dir():
                continue
            if dry_run:
                logger.warning("Directory %s required by %s does not exist yet", directory, step.name)
                continue
            logger.error("Required directory %s not found", directory)
            raise StepFailure(step.name, ErrorKind.MISSING_DIRECTORY, f"required directory '{directory}' not found")

        logger.info("Running step %s", step.name)
        try:
            detail = step.action()
        except (CommandError, OSError, ProvisionError) as exc:
            if not step.required:
                logger.warning("%s failed, continuing: %s", step.name, exc)
                return StepResult(step.name, StepStatus.SKIPPED, f"failed: {exc}")
            logger.error("Error: %s failed", step.name)
            raise StepFailure(step.name, step.kind, str(exc)) from exc

        return StepResult(step.name, StepStatus.RAN, detail)
