"""TOML configuration loading for fedoradots."""

from __future__ import annotations

import copy
import io
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Sequence

import tomli_w
from pydantic import BaseModel, ConfigDict

DEFAULT_CONFIG_FILENAME = "fedoradots.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "settings": {
        "source_root": ".",
        "home": "~",
        "deploy_dir": "~/dotfiles",
        "sudo": ["sudo"],
    },
    "packages": {
        "bootstrap": ["dnf", "install", "-y", "dnf5"],
        "install": ["dnf5", "install", "-y"],
        "release_query": ["rpm", "-E", "%fedora"],
        "repositories": [
            "https://mirrors.rpmfusion.org/nonfree/fedora/rpmfusion-nonfree-release-{fedora}.noarch.rpm",
        ],
        "groups": {
            "general": [
                "luarocks", "neovim", "nodejs", "kitty", "stow", "git", "wget", "curl", "xdotool",
                "nitrogen", "lxappearance", "picom", "sxhkd", "alacritty", "bspwm",
            ],
            "dev_tools": ["gcc", "gcc-c++", "make", "automake", "autoconf", "libtool", "patch", "cmake"],
            "compile": [
                "pkg-config", "libX11-devel", "libXft-devel", "libXinerama-devel", "libXrandr-devel",
                "libXpm-devel", "freetype", "cairo-devel", "pango-devel", "libxcb-devel", "xcb-util-devel",
                "libXcursor-devel", "xcb-util-wm-devel", "xcb-util-keysyms-devel", "libbsd-devel", "libXt-devel",
            ],
        },
        "local": ["dzen2.rpm"],
    },
    "links": [
        {"source": "/usr/include/freetype2/ft2build.h", "target": "/usr/include/ft2build.h"},
        {"source": "/usr/include/freetype2/freetype", "target": "/usr/include/freetype"},
    ],
    "repos": [
        {"url": "https://gitlab.com/cuauhtlios/bin.git", "dest": "bin"},
        {"url": "https://github.com/conformal/spectrwm.git", "dest": "spectrwm"},
        {"url": "https://gitlab.com/shastenm/dmenu-solarized.git", "dest": "dmenu-solarized"},
        {"url": "https://github.com/baskerville/xtitle.git", "dest": "xtitle"},
        {"url": "https://gitlab.com/shastenm/dotfiles.git", "dest": "dotfiles"},
        {"url": "https://gitlab.com/shastenm/wallpaper.git", "dest": "wallpaper"},
    ],
    "builds": [
        {"name": "spectrwm", "dir": "spectrwm/linux", "build": ["make"], "install": ["make", "install"]},
        {"name": "dmenu", "dir": "dmenu-solarized", "build": ["make"], "install": ["make", "clean", "install"]},
        {"name": "xtitle", "dir": "xtitle", "build": ["make"], "install": ["make", "install"]},
    ],
    "assets": [
        {"name": "fonts", "source": "fonts", "dest": "~/.local/share/fonts", "after": ["fc-cache", "-fv"]},
        {"name": "bin", "source": "bin", "dest": "~/.local/bin"},
        {"name": "wallpaper", "source": "wallpaper", "dest": "~/Pictures"},
    ],
    "home_files": ["~/.cargo/env"],
    "scripts": [
        {"name": "starship", "url": "https://starship.rs/install.sh", "args": ["--yes"]},
    ],
    "dotfiles": {"source": "dotfiles"},
}


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed or validated."""


def _expand_path(raw: str | os.PathLike[str] | Path, *, base_dir: Path) -> Path:
    """Return an absolute ``Path`` by expanding env vars and user segments."""

    text = str(raw)
    expanded = Path(os.path.expandvars(text)).expanduser()
    if expanded.is_absolute():
        return expanded.resolve(strict=False)
    return (base_dir / expanded).resolve(strict=False)


def _relative_path(raw: Any, *, owner: str) -> Path:
    """Validate a path that must stay inside the source root."""

    if not raw:
        raise ConfigError(f"{owner} must define a path")
    candidate = Path(str(raw))
    if candidate.is_absolute():
        raise ConfigError(f"{owner} path '{candidate}' must be relative to the source root")
    if ".." in candidate.parts:
        raise ConfigError(f"{owner} path '{candidate}' must not escape the source root")
    return candidate


def _argv(raw: Any, *, owner: str, allow_empty: bool = False) -> tuple[str, ...]:
    if raw is None:
        raw = []
    if isinstance(raw, str) or not isinstance(raw, Sequence):
        raise ConfigError(f"{owner} must be a list of strings")
    argv = tuple(str(item) for item in raw)
    if not argv and not allow_empty:
        raise ConfigError(f"{owner} must not be empty")
    return argv


def _require(raw: Mapping[str, Any], key: str, *, owner: str) -> str:
    value = raw.get(key)
    if not value:
        raise ConfigError(f"{owner} must define '{key}'")
    return str(value)


class Layout(BaseModel):
    """Filesystem roots for a provisioning run. Built once and never mutated."""

    model_config = ConfigDict(frozen=True)

    source_root: Path
    home: Path
    config_root: Path
    deploy_dir: Path

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path, source_root: Path | None = None) -> "Layout":
        home = _expand_path(raw.get("home", "~"), base_dir=base_dir)
        default_config_root = os.environ.get("XDG_CONFIG_HOME") or str(home / ".config")
        root = (
            source_root.resolve(strict=False)
            if source_root is not None
            else _expand_path(raw.get("source_root", "."), base_dir=base_dir)
        )
        return cls(
            source_root=root,
            home=home,
            config_root=_expand_path(raw.get("config_root", default_config_root), base_dir=base_dir),
            deploy_dir=_expand_path(raw.get("deploy_dir", home / "dotfiles"), base_dir=base_dir),
        )

    def source(self, relative: Path) -> Path:
        return self.source_root / relative


class PackageSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    bootstrap: tuple[str, ...]
    install: tuple[str, ...]
    release_query: tuple[str, ...]
    repositories: tuple[str, ...]
    groups: Dict[str, tuple[str, ...]]
    local: tuple[Path, ...]

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "PackageSettings":
        groups: Dict[str, tuple[str, ...]] = {}
        for name, packages in (raw.get("groups") or {}).items():
            groups[name] = _argv(packages, owner=f"Package group '{name}'")

        repositories = tuple(str(url) for url in raw.get("repositories") or [])
        if any(not url.strip() for url in repositories):
            raise ConfigError("Package repositories must not contain empty URLs")

        return cls(
            bootstrap=_argv(raw.get("bootstrap"), owner="packages.bootstrap", allow_empty=True),
            install=_argv(raw.get("install", ["dnf5", "install", "-y"]), owner="packages.install"),
            release_query=_argv(raw.get("release_query", ["rpm", "-E", "%fedora"]), owner="packages.release_query"),
            repositories=repositories,
            groups=groups,
            local=tuple(_relative_path(item, owner="Local package") for item in raw.get("local") or []),
        )


class SystemLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: Path
    target: Path

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "SystemLink":
        return cls(
            source=_expand_path(_require(raw, "source", owner="System link"), base_dir=base_dir),
            target=_expand_path(_require(raw, "target", owner="System link"), base_dir=base_dir),
        )


class RepoSpec(BaseModel):
    """A git repository cloned under the source root."""

    model_config = ConfigDict(frozen=True)

    url: str
    dest: Path

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RepoSpec":
        url = _require(raw, "url", owner="Repository")
        return cls(url=url, dest=_relative_path(raw.get("dest"), owner=f"Repository '{url}'"))


class BuildSpec(BaseModel):
    """A source tree compiled with ``build`` and installed with ``install``."""

    model_config = ConfigDict(frozen=True)

    name: str
    directory: Path
    build: tuple[str, ...]
    install: tuple[str, ...]
    sudo_install: bool = True

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BuildSpec":
        name = _require(raw, "name", owner="Build")
        return cls(
            name=name,
            directory=_relative_path(raw.get("dir"), owner=f"Build '{name}'"),
            build=_argv(raw.get("build", ["make"]), owner=f"Build '{name}' build command"),
            install=_argv(raw.get("install", ["make", "install"]), owner=f"Build '{name}' install command"),
            sudo_install=bool(raw.get("sudo_install", True)),
        )


class AssetSpec(BaseModel):
    """A directory whose contents are copied somewhere under the home directory."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: Path
    destination: Path
    required: bool = False
    after: tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, base_dir: Path) -> "AssetSpec":
        name = _require(raw, "name", owner="Asset")
        return cls(
            name=name,
            source=_relative_path(raw.get("source"), owner=f"Asset '{name}'"),
            destination=_expand_path(_require(raw, "dest", owner=f"Asset '{name}'"), base_dir=base_dir),
            required=bool(raw.get("required", False)),
            after=_argv(raw.get("after"), owner=f"Asset '{name}' follow-up command", allow_empty=True),
        )


class ScriptSpec(BaseModel):
    """A remote installer script fetched over HTTP and piped into ``sh``."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    args: tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ScriptSpec":
        name = _require(raw, "name", owner="Script")
        return cls(
            name=name,
            url=_require(raw, "url", owner=f"Script '{name}'"),
            args=_argv(raw.get("args"), owner=f"Script '{name}' args", allow_empty=True),
        )


class Config(BaseModel):
    """Fully parsed configuration."""

    model_config = ConfigDict(frozen=True)

    config_path: Path | None
    layout: Layout
    sudo: tuple[str, ...]
    packages: PackageSettings
    links: tuple[SystemLink, ...]
    repos: tuple[RepoSpec, ...]
    builds: tuple[BuildSpec, ...]
    assets: tuple[AssetSpec, ...]
    home_files: tuple[Path, ...]
    scripts: tuple[ScriptSpec, ...]
    dotfiles_source: Path

    @classmethod
    def from_raw(
        cls,
        data: Mapping[str, Any],
        *,
        base_dir: Path,
        config_path: Path | None = None,
        source_root: Path | None = None,
    ) -> "Config":
        settings = data.get("settings") or {}
        dotfiles = data.get("dotfiles") or {}
        return cls(
            config_path=config_path,
            layout=Layout.from_raw(settings, base_dir=base_dir, source_root=source_root),
            sudo=_argv(settings.get("sudo", ["sudo"]), owner="settings.sudo", allow_empty=True),
            packages=PackageSettings.from_raw(data.get("packages") or {}),
            links=tuple(SystemLink.from_raw(item, base_dir=base_dir) for item in data.get("links") or []),
            repos=tuple(RepoSpec.from_raw(item) for item in data.get("repos") or []),
            builds=tuple(BuildSpec.from_raw(item) for item in data.get("builds") or []),
            assets=tuple(AssetSpec.from_raw(item, base_dir=base_dir) for item in data.get("assets") or []),
            home_files=tuple(_expand_path(item, base_dir=base_dir) for item in data.get("home_files") or []),
            scripts=tuple(ScriptSpec.from_raw(item) for item in data.get("scripts") or []),
            dotfiles_source=_relative_path(dotfiles.get("source", "dotfiles"), owner="Dotfiles source"),
        )

    @property
    def dotfiles_dir(self) -> Path:
        return self.layout.source(self.dotfiles_source)


def default_config(source_root: Path | None = None) -> Config:
    """Return the built-in configuration rooted at ``source_root`` (or the CWD)."""

    base_dir = Path.cwd()
    return Config.from_raw(copy.deepcopy(DEFAULT_CONFIG), base_dir=base_dir, source_root=source_root)


def load_config(path: Path | None = None, *, source_root: Path | None = None) -> Config:
    """Load and validate a configuration file.

    Args:
        path: Optional path to the TOML file or the directory holding it. When
            omitted, ``fedoradots.toml`` in the working directory is used if
            present, otherwise the built-in defaults.
        source_root: Overrides ``settings.source_root``.
    """

    if path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            return default_config(source_root)
        path = candidate

    config_path = _resolve_config_path(path)

    try:
        with config_path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Configuration file '{config_path}' is not valid TOML: {exc}") from exc

    return Config.from_raw(data, base_dir=config_path.parent, config_path=config_path, source_root=source_root)


def render_config(data: Mapping[str, Any] | None = None) -> str:
    """Serialize ``data`` (the built-in defaults when omitted) as TOML."""

    buffer = io.StringIO()
    buffer.write("# fedoradots configuration\n\n")
    buffer.write(tomli_w.dumps(dict(data if data is not None else DEFAULT_CONFIG)))
    return buffer.getvalue()


def _resolve_config_path(path: Path) -> Path:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file '{path}' does not exist")
    if path.is_dir():
        candidate = path / DEFAULT_CONFIG_FILENAME
        if not candidate.exists():
            raise ConfigError(f"Expected to find '{DEFAULT_CONFIG_FILENAME}' inside '{path}', but none was located")
        path = candidate

    return path.resolve(strict=False)
