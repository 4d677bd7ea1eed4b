"""Conflict-safe deployment of a dotfiles tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .config import Layout
from .errors import DeployError
from .filesystem import copy_entry, detect_entry_kind, ensure_symlink, is_within, remove_path, symlink_points_to
from .models import (
    DeployAction,
    DeployResult,
    DeployTarget,
    EntryKind,
    LinkState,
    LinkStatus,
    RemovalPlan,
    TargetEntry,
)

logger = logging.getLogger(__name__)

CONFIG_SUBTREE = ".config"

ConfirmFn = Callable[[RemovalPlan], bool]


def compute_targets(source_root: Path, layout: Layout) -> list[DeployTarget]:
    """Map every deployable entry of ``source_root`` to its link location.

    Top-level entries become ``<home>/.<name>``. Children of the ``.config``
    directory become ``<config_root>/<name>``. Other hidden top-level entries
    (``.git`` and friends) and dangling symlinks are not deployed.
    """

    targets: list[DeployTarget] = []
    deploy_dir = layout.deploy_dir

    for child in sorted(source_root.iterdir()):
        name = child.name
        if name.startswith(".") or _dangling(child):
            continue
        targets.append(
            DeployTarget(
                name=name,
                source=child,
                deployed=deploy_dir / name,
                target=layout.home / f".{name}",
            )
        )

    config_tree = source_root / CONFIG_SUBTREE
    if config_tree.is_dir() and not config_tree.is_symlink():
        for child in sorted(config_tree.iterdir()):
            if _dangling(child):
                continue
            targets.append(
                DeployTarget(
                    name=f"{CONFIG_SUBTREE}/{child.name}",
                    source=child,
                    deployed=deploy_dir / CONFIG_SUBTREE / child.name,
                    target=layout.config_root / child.name,
                )
            )

    return targets


def _dangling(path: Path) -> bool:
    return detect_entry_kind(path) is EntryKind.SYMLINK and not path.exists()


def snapshot(targets: Iterable[DeployTarget]) -> list[TargetEntry]:
    """Classify what currently occupies each target path."""

    return [TargetEntry(path=item.target, kind=detect_entry_kind(item.target)) for item in targets]


def plan_removals(entries: Iterable[TargetEntry]) -> RemovalPlan:
    """Return the entries that must be removed before linking."""

    return RemovalPlan(removals=tuple(entry for entry in entries if entry.present))


def apply_removals(plan: RemovalPlan) -> None:
    for entry in plan.removals:
        logger.info("Removing %s (%s)", entry.path, entry.kind.value)
        remove_path(entry.path)


class DotfilesDeployer:
    """Clears conflicting targets, copies the tree and links every entry."""

    def __init__(self, source_root: Path, layout: Layout) -> None:
        self.source_root = source_root
        self.layout = layout

    def targets(self) -> list[DeployTarget]:
        if not self.source_root.is_dir():
            raise DeployError(f"Dotfiles directory '{self.source_root}' does not exist")
        return compute_targets(self.source_root, self.layout)

    def plan(self) -> tuple[list[DeployTarget], RemovalPlan]:
        targets = self.targets()
        return targets, plan_removals(snapshot(targets))

    def deploy(self, *, dry_run: bool = False, confirm: ConfirmFn | None = None) -> list[DeployResult]:
        targets, plan = self.plan()
        replaced = set(plan.paths())

        if dry_run:
            for path in plan.paths():
                logger.info("Would remove %s", path)
            return [DeployResult(target=item, action=DeployAction.PLANNED) for item in targets]

        self._check_deploy_dir()
        self._check_targets(targets)

        if plan and confirm is not None and not confirm(plan):
            raise DeployError("Deployment cancelled; no files were removed")

        logger.info("Checking for conflicts in %s and %s", self.layout.home, self.layout.config_root)
        apply_removals(plan)

        logger.info("Copying %s to %s", self.source_root, self.layout.deploy_dir)
        copy_entry(self.source_root.resolve(), self.layout.deploy_dir)

        results: list[DeployResult] = []
        for item in targets:
            ensure_symlink(item.target, item.deployed)
            action = DeployAction.REPLACED if item.target in replaced else DeployAction.LINKED
            logger.debug("%s %s -> %s", action.value, item.target, item.deployed)
            results.append(DeployResult(target=item, action=action))

        return results

    def status(self) -> list[LinkStatus]:
        return [self._status_for(item) for item in self.targets()]

    # ------------------------------------------------------------------
    # Internal helpers

    def _check_deploy_dir(self) -> None:
        deploy_dir = self.layout.deploy_dir
        if is_within(deploy_dir, self.source_root) or is_within(self.source_root, deploy_dir):
            raise DeployError(
                f"Deploy directory '{deploy_dir}' overlaps the dotfiles source '{self.source_root}'"
            )

    def _check_targets(self, targets: Iterable[DeployTarget]) -> None:
        for item in targets:
            parent = item.target.parent
            for root in (self.layout.deploy_dir, self.source_root):
                if is_within(parent, root):
                    raise DeployError(f"Target '{item.target}' resolves into '{root}'; no files were removed")

    def _status_for(self, item: DeployTarget) -> LinkStatus:
        kind = detect_entry_kind(item.target)
        if kind is EntryKind.ABSENT:
            return LinkStatus(target=item, state=LinkState.MISSING, details="Target does not exist")
        if not symlink_points_to(item.target, item.deployed):
            return LinkStatus(
                target=item,
                state=LinkState.CONFLICT,
                details=f"Target is a {kind.value} not linked to the deployed tree",
            )
        if detect_entry_kind(item.deployed) is EntryKind.ABSENT:
            return LinkStatus(target=item, state=LinkState.MISSING, details="Deployed copy is missing")
        return LinkStatus(target=item, state=LinkState.LINKED)


def describe_plan(plan: RemovalPlan) -> Sequence[str]:
    return [f"{entry.kind.value}: {entry.path}" for entry in plan.removals]
