"""Core package for the fedoradots project."""

from .cli import app, run
from .config import Config, ConfigError, Layout, default_config, load_config
from .deploy import DotfilesDeployer, compute_targets, plan_removals, snapshot
from .errors import DeployError, ProvisionError, StepFailure
from .models import (
    DeployAction,
    DeployResult,
    EntryKind,
    ErrorKind,
    LinkState,
    PipelineResult,
    RemovalPlan,
    StepResult,
    StepStatus,
    TargetEntry,
)
from .runner import Step, StepRunner
from .steps import StepContext, build_pipeline

__all__ = [
    "Config",
    "ConfigError",
    "Layout",
    "default_config",
    "load_config",
    "DotfilesDeployer",
    "compute_targets",
    "plan_removals",
    "snapshot",
    "DeployError",
    "ProvisionError",
    "StepFailure",
    "DeployAction",
    "DeployResult",
    "EntryKind",
    "ErrorKind",
    "LinkState",
    "PipelineResult",
    "RemovalPlan",
    "StepResult",
    "StepStatus",
    "TargetEntry",
    "Step",
    "StepRunner",
    "StepContext",
    "build_pipeline",
    "app",
    "run",
]
