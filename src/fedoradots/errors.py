"""Exception hierarchy for fedoradots."""

from __future__ import annotations

from .models import ErrorKind


class ProvisionError(RuntimeError):
    """Raised when provisioning cannot continue."""


class DeployError(ProvisionError):
    """Raised when the dotfiles deployment cannot proceed."""


class StepFailure(ProvisionError):
    """A pipeline step failed; carries the step name and failure kind."""

    def __init__(self, step: str, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.step = step
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"step '{self.step}' failed ({self.kind.value}): {self.message}"
