"""pi-keymap: vim-style key routing for terminal applications."""

# Keys and patterns
from pi.keymap.keys import (
    Key,
    Modifier,
    Special,
    format_keys,
    generates_escape_sequence,
)
from pi.keymap.pattern import expand_aliases, parse_pattern

# Routing
from pi.keymap.bindings import Binding, Handler, Match
from pi.keymap.router import DEFAULT_TIMEOUT, Router, Sender

# Dispatch
from pi.keymap.input import Input, Pending

# Terminal decoding
from pi.keymap.reader import (
    DEFAULT_ESCAPE_TIMEOUT,
    ByteSource,
    FileDescriptorSource,
    Reader,
)

# Config
from pi.keymap.config import (
    ConfigError,
    KeymapConfig,
    config_path,
    load_config,
)

__all__ = [
    # Keys and patterns
    "Key",
    "Modifier",
    "Special",
    "expand_aliases",
    "format_keys",
    "generates_escape_sequence",
    "parse_pattern",
    # Routing
    "Binding",
    "DEFAULT_TIMEOUT",
    "Handler",
    "Match",
    "Router",
    "Sender",
    # Dispatch
    "Input",
    "Pending",
    # Terminal decoding
    "ByteSource",
    "DEFAULT_ESCAPE_TIMEOUT",
    "FileDescriptorSource",
    "Reader",
    # Config
    "ConfigError",
    "KeymapConfig",
    "config_path",
    "load_config",
]
