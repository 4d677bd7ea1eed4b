"""Shared models and enums for fedoradots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class EntryKind(str, Enum):
    """Kinds of filesystem entries found at a path."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    ABSENT = "absent"


class ErrorKind(str, Enum):
    """Failure categories reported by the step runner."""

    PACKAGE = "package"
    NETWORK = "network"
    BUILD = "build"
    MISSING_DIRECTORY = "missing_directory"
    DEPLOY = "deploy"


class StepStatus(str, Enum):
    RAN = "ran"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class StepResult:
    """Outcome of a single provisioning step."""

    name: str
    status: StepStatus
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Ordered results of a pipeline run."""

    results: tuple[StepResult, ...]

    @property
    def ran_steps(self) -> list[str]:
        return [result.name for result in self.results if result.status is StepStatus.RAN]

    @property
    def skipped_steps(self) -> list[str]:
        return [result.name for result in self.results if result.status is StepStatus.SKIPPED]


@dataclass(frozen=True, slots=True)
class TargetEntry:
    """Snapshot of a destination path and what currently occupies it."""

    path: Path
    kind: EntryKind

    @property
    def present(self) -> bool:
        return self.kind is not EntryKind.ABSENT


@dataclass(frozen=True, slots=True)
class DeployTarget:
    """Maps one dotfiles entry to its deployed copy and its link location."""

    name: str
    source: Path
    deployed: Path
    target: Path


@dataclass(frozen=True, slots=True)
class RemovalPlan:
    """Targets that must be cleared before linking."""

    removals: tuple[TargetEntry, ...]

    def __bool__(self) -> bool:
        return bool(self.removals)

    def paths(self) -> list[Path]:
        return [entry.path for entry in self.removals]


class DeployAction(str, Enum):
    """Outcome of deploying a single target."""

    LINKED = "linked"
    REPLACED = "replaced"
    PLANNED = "planned"


@dataclass(frozen=True, slots=True)
class DeployResult:
    target: DeployTarget
    action: DeployAction


class LinkState(str, Enum):
    """States reported by ``fedoradots status``."""

    LINKED = "linked"
    MISSING = "missing"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True)
class LinkStatus:
    target: DeployTarget
    state: LinkState
    details: str | None = None
