"""Keybinding config file support.

Bindings are read from a single TOML file shared by every application::

    [aliases]
    Leader = ","

    [global]
    scroll_down = "n"

    [myapp]
    find_files = "<Leader>f"

Application order is aliases, then ``[global]``, then the app's own section,
so app bindings override global ones. Only named bindings (see
:meth:`pi.keymap.router.Router.handle_named`) can be rebound.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

import toml

if TYPE_CHECKING:
    from pi.keymap.router import Router

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "pi-keymap.toml"

_RESERVED_SECTIONS = ("aliases", "global")


class ConfigError(Exception):
    """Raised when a config file exists but cannot be read or parsed."""


@dataclass
class KeymapConfig:
    aliases: dict[str, str] = field(default_factory=dict)
    global_bindings: dict[str, str] = field(default_factory=dict)
    apps: dict[str, dict[str, str]] = field(default_factory=dict)

    def app_bindings(self, app_name: str) -> dict[str, str]:
        return self.apps.get(app_name, {})


def config_path() -> str | None:
    """Default config location.

    ``$XDG_CONFIG_HOME/pi-keymap.toml`` when set, otherwise
    ``~/.config/pi-keymap.toml``. Returns ``None`` if no home directory can
    be determined.
    """
    config_dir = os.environ.get("XDG_CONFIG_HOME", "")
    if not config_dir:
        try:
            config_dir = str(Path.home() / ".config")
        except RuntimeError:
            return None
    return str(Path(config_dir) / CONFIG_FILE_NAME)


def _string_table(value: Any) -> dict[str, str]:
    """Keep only string entries of a TOML table; anything else is ignored."""
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def parse_config(raw: dict[str, Any]) -> KeymapConfig:
    cfg = KeymapConfig(
        aliases=_string_table(raw.get("aliases")),
        global_bindings=_string_table(raw.get("global")),
    )
    for section, value in raw.items():
        if section in _RESERVED_SECTIONS or not isinstance(value, dict):
            continue
        cfg.apps[section] = _string_table(value)
    return cfg


def load_config(path: str | os.PathLike[str] | None) -> KeymapConfig:
    """Read and parse a config file.

    A missing file (or no path at all) yields an empty config.
    """
    if not path:
        return KeymapConfig()

    try:
        raw = toml.load(path)
    except FileNotFoundError:
        logger.debug("no keymap config at %s", path)
        return KeymapConfig()
    except toml.TomlDecodeError as exc:
        raise ConfigError(f"invalid keymap config {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"cannot read keymap config {path}: {exc}") from exc

    logger.debug("loaded keymap config from %s", path)
    return parse_config(raw)


def apply_config(router: Router, cfg: KeymapConfig, app_name: str) -> None:
    """Apply aliases, then global bindings, then *app_name*'s bindings."""
    for name, expansion in cfg.aliases.items():
        router.set_alias(name, expansion)
    router.apply_bindings(cfg.global_bindings)
    router.apply_bindings(cfg.app_bindings(app_name))


def write_default_bindings(router: Router, stream: IO[str], app_name: str) -> None:
    """Write a config template with every named binding commented out."""
    lines = [f"[{app_name}]"]
    for binding in router.bindings():
        lines.append(f'# {binding.name} = {_toml_string(binding.default_pattern)}')
    stream.write("\n".join(lines) + "\n")


def _toml_string(value: str) -> str:
    # Literal strings need no escaping, and the toml parser misreads
    # escaped quotes inside basic strings
    if "'" not in value and "\n" not in value:
        return f"'{value}'"
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n") + '"'
