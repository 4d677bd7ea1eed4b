from __future__ import annotations

import tomllib
from pathlib import Path
from textwrap import dedent

import pytest

from fedoradots.config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    default_config,
    load_config,
    render_config,
)


def _write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text(dedent(body))
    return config_path


def test_load_config_happy_path(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
        [settings]
        source_root = "./sources"
        deploy_dir = "~/dots"
        sudo = []

        [packages]
        install = ["dnf5", "install", "-y"]
        groups = { base = ["git", "stow"] }

        [[repos]]
        url = "https://example.com/dotfiles.git"
        dest = "dotfiles"

        [[builds]]
        name = "spectrwm"
        dir = "spectrwm/linux"

        [[assets]]
        name = "fonts"
        source = "fonts"
        dest = "~/.local/share/fonts"
        after = ["fc-cache", "-fv"]

        [dotfiles]
        source = "dotfiles"
        """,
    )

    config = load_config(config_path)

    assert config.config_path == config_path.resolve(strict=False)
    assert config.layout.source_root == (tmp_path / "sources").resolve(strict=False)
    assert config.layout.home == fake_home.resolve()
    assert config.layout.config_root == fake_home.resolve() / ".config"
    assert config.layout.deploy_dir == fake_home.resolve() / "dots"
    assert config.sudo == ()
    assert config.packages.groups == {"base": ("git", "stow")}
    assert config.packages.bootstrap == ()
    assert config.repos[0].dest == Path("dotfiles")
    assert config.builds[0].build == ("make",)
    assert config.builds[0].install == ("make", "install")
    assert config.builds[0].sudo_install is True
    assert config.assets[0].destination == fake_home.resolve() / ".local/share/fonts"
    assert config.assets[0].after == ("fc-cache", "-fv")
    assert config.dotfiles_dir == config.layout.source_root / "dotfiles"


def test_xdg_config_home_is_honoured(tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    config_path = _write_config(tmp_path, "[settings]\n")

    config = load_config(config_path)

    assert config.layout.config_root == (tmp_path / "xdg").resolve()


def test_source_root_override(tmp_path: Path, fake_home: Path) -> None:
    config_path = _write_config(tmp_path, '[settings]\nsource_root = "./ignored"\n')

    config = load_config(config_path, source_root=tmp_path / "elsewhere")

    assert config.layout.source_root == (tmp_path / "elsewhere").resolve()


def test_defaults_used_without_config_file(
    tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.config_path is None
    assert config.layout.source_root == tmp_path.resolve()
    assert [build.name for build in config.builds] == ["spectrwm", "dmenu", "xtitle"]
    assert config.builds[1].install == ("make", "clean", "install")
    assert [repo.dest.as_posix() for repo in config.repos][-2:] == ["dotfiles", "wallpaper"]
    assert config.packages.local == (Path("dzen2.rpm"),)
    assert config.home_files == (fake_home.resolve() / ".cargo/env",)
    assert config.scripts[0].name == "starship"


def test_config_file_in_cwd_is_preferred(tmp_path: Path, fake_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_config(tmp_path, "[settings]\nsudo = []\n")
    monkeypatch.chdir(tmp_path)

    config = load_config()

    assert config.config_path == (tmp_path / DEFAULT_CONFIG_FILENAME).resolve()
    assert config.builds == ()


def test_directory_argument_resolves_default_file(tmp_path: Path, fake_home: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    _write_config(config_dir, "[settings]\n")

    config = load_config(config_dir)

    assert config.config_path == (config_dir / DEFAULT_CONFIG_FILENAME).resolve(strict=False)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="does not exist"):
        load_config(tmp_path / "nope.toml")


def test_invalid_toml(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path, "[settings\n")

    with pytest.raises(ConfigError, match="not valid TOML"):
        load_config(config_path)


@pytest.mark.parametrize(
    "body",
    [
        '[[repos]]\nurl = "https://example.com/x.git"\ndest = "/etc"\n',
        '[[repos]]\nurl = "https://example.com/x.git"\ndest = "../outside"\n',
        '[[repos]]\ndest = "x"\n',
        '[[builds]]\nname = "dmenu"\n',
        '[packages]\ngroups = { empty = [] }\n',
        '[packages]\nrepositories = [""]\n',
        '[[assets]]\nname = "fonts"\nsource = "fonts"\n',
    ],
)
def test_invalid_entries_rejected(tmp_path: Path, fake_home: Path, body: str) -> None:
    config_path = _write_config(tmp_path, body)

    with pytest.raises(ConfigError):
        load_config(config_path)


def test_render_config_round_trips_defaults(tmp_path: Path, fake_home: Path) -> None:
    text = render_config()
    assert text.startswith("# fedoradots configuration")
    assert tomllib.loads(text)["dotfiles"] == {"source": "dotfiles"}

    config_path = tmp_path / DEFAULT_CONFIG_FILENAME
    config_path.write_text(text)

    loaded = load_config(config_path)
    builtin = default_config(tmp_path)

    assert loaded.builds == builtin.builds
    assert loaded.repos == builtin.repos
    assert loaded.packages == builtin.packages
    assert loaded.layout == builtin.layout
