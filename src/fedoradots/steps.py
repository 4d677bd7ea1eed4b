"""Provisioning steps derived from the configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .command import CmdResult, CommandFn, run_cmd
from .config import AssetSpec, BuildSpec, Config, Layout, RepoSpec, ScriptSpec, SystemLink
from .deploy import ConfirmFn, DotfilesDeployer
from .filesystem import copy_contents, touch_file
from .models import ErrorKind
from .runner import Step

logger = logging.getLogger(__name__)

RELEASE_PLACEHOLDER = "{fedora}"


@dataclass(frozen=True)
class StepContext:
    config: Config
    dry_run: bool = False
    run: CommandFn = run_cmd
    confirm: ConfirmFn | None = None

    @property
    def layout(self) -> Layout:
        return self.config.layout

    def sh(
        self,
        argv: Sequence[str],
        *,
        sudo: bool = False,
        cwd: Path | None = None,
        input_text: str | None = None,
    ) -> CmdResult:
        prefix = list(self.config.sudo) if sudo else []
        return self.run([*prefix, *argv], cwd=cwd, input_text=input_text, dry_run=self.dry_run)


def build_pipeline(ctx: StepContext) -> list[Step]:
    """Return every provisioning step in execution order."""

    config = ctx.config
    steps: list[Step] = []

    if config.packages.bootstrap:
        steps.append(bootstrap_step(ctx))
    if config.packages.repositories:
        steps.append(repositories_step(ctx))
    steps.extend(system_link_step(ctx, link) for link in config.links)
    steps.extend(package_group_step(ctx, name, packages) for name, packages in config.packages.groups.items())
    steps.extend(clone_step(ctx, repo) for repo in config.repos)
    steps.extend(build_step(ctx, build) for build in config.builds)
    steps.extend(local_package_step(ctx, path) for path in config.packages.local)
    steps.extend(asset_step(ctx, asset) for asset in config.assets)
    if config.home_files:
        steps.append(home_files_step(ctx))
    steps.extend(script_step(ctx, script) for script in config.scripts)
    steps.append(dotfiles_step(ctx))

    return steps


def bootstrap_step(ctx: StepContext) -> Step:
    def action() -> None:
        ctx.sh(ctx.config.packages.bootstrap, sudo=True)

    return Step(name="bootstrap", action=action, kind=ErrorKind.PACKAGE)


def repositories_step(ctx: StepContext) -> Step:
    packages = ctx.config.packages

    def action() -> str:
        urls = list(packages.repositories)
        if any(RELEASE_PLACEHOLDER in url for url in urls):
            release = fedora_release(ctx)
            if release:
                urls = [url.replace(RELEASE_PLACEHOLDER, release) for url in urls]
        ctx.sh([*packages.install, *urls], sudo=True)
        return f"{len(urls)} repositories"

    return Step(name="repositories", action=action, kind=ErrorKind.PACKAGE)


def fedora_release(ctx: StepContext) -> str:
    """Return the release number reported by ``rpm -E %fedora``."""

    return ctx.sh(ctx.config.packages.release_query).stdout.strip()


def system_link_step(ctx: StepContext, link: SystemLink) -> Step:
    def action() -> None:
        ctx.sh(["ln", "-s", str(link.source), str(link.target)], sudo=True)

    # header shims are best effort; a failure is logged and the run continues
    return Step(
        name=f"system-link:{link.target}",
        action=action,
        kind=ErrorKind.BUILD,
        skip_if_exists=link.target,
        required=False,
    )


def package_group_step(ctx: StepContext, name: str, packages: Sequence[str]) -> Step:
    def action() -> str:
        logger.info("Installing %s packages", name)
        ctx.sh([*ctx.config.packages.install, *packages], sudo=True)
        return f"{len(packages)} packages"

    return Step(name=f"packages:{name}", action=action, kind=ErrorKind.PACKAGE)


def clone_step(ctx: StepContext, repo: RepoSpec) -> Step:
    dest = ctx.layout.source(repo.dest)

    def action() -> None:
        logger.info("Cloning %s to %s", repo.url, dest)
        ctx.sh(["git", "clone", repo.url, str(dest)])

    return Step(
        name=f"clone:{repo.dest.as_posix()}",
        action=action,
        kind=ErrorKind.NETWORK,
        skip_if_dir=dest,
    )


def build_step(ctx: StepContext, build: BuildSpec) -> Step:
    directory = ctx.layout.source(build.directory)

    def action() -> None:
        logger.info("Compiling and installing %s", build.name)
        ctx.sh(build.build, cwd=directory)
        ctx.sh(build.install, sudo=build.sudo_install, cwd=directory)

    return Step(name=f"build:{build.name}", action=action, kind=ErrorKind.BUILD, requires=(directory,))


def local_package_step(ctx: StepContext, relative: Path) -> Step:
    path = ctx.layout.source(relative)

    def action() -> None:
        ctx.sh([*ctx.config.packages.install, str(path)], sudo=True)

    return Step(
        name=f"local-package:{relative.as_posix()}",
        action=action,
        kind=ErrorKind.PACKAGE,
        skip_unless_exists=(path,),
    )


def asset_step(ctx: StepContext, asset: AssetSpec) -> Step:
    source = ctx.layout.source(asset.source)

    def action() -> str:
        if ctx.dry_run:
            logger.info("Would copy %s/* to %s", source, asset.destination)
            copied = 0
        else:
            copied = len(copy_contents(source, asset.destination))
        if asset.after:
            ctx.sh(asset.after)
        return f"{copied} entries to {asset.destination}"

    if asset.required:
        return Step(name=f"assets:{asset.name}", action=action, kind=ErrorKind.DEPLOY, requires=(source,))
    return Step(name=f"assets:{asset.name}", action=action, kind=ErrorKind.DEPLOY, skip_unless_exists=(source,))


def home_files_step(ctx: StepContext) -> Step:
    def action() -> str:
        created = 0
        for path in ctx.config.home_files:
            if ctx.dry_run:
                logger.info("Would create %s", path)
            elif touch_file(path):
                created += 1
        return f"{created} files created"

    return Step(name="home-files", action=action, kind=ErrorKind.DEPLOY)


def script_step(ctx: StepContext, script: ScriptSpec) -> Step:
    def action() -> None:
        logger.info("Installing %s", script.name)
        fetched = ctx.sh(["curl", "-fsSL", script.url])
        ctx.sh(["sh", "-s", "--", *script.args], input_text=fetched.stdout)

    return Step(name=f"script:{script.name}", action=action, kind=ErrorKind.NETWORK)


def dotfiles_step(ctx: StepContext) -> Step:
    source = ctx.config.dotfiles_dir

    def action() -> str:
        if ctx.dry_run and not source.is_dir():
            logger.info("Would deploy %s once it has been cloned", source)
            return "not cloned yet"
        deployer = DotfilesDeployer(source, ctx.layout)
        results = deployer.deploy(dry_run=ctx.dry_run, confirm=ctx.confirm)
        return f"{len(results)} entries"

    return Step(name="dotfiles", action=action, kind=ErrorKind.DEPLOY, requires=(source,))
