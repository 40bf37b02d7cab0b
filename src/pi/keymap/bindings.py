"""Named binding records used for introspection and rebinding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from pi.keymap.keys import Key


@dataclass(frozen=True)
class Match:
    """A matched key sequence handed to a handler.

    ``keys`` excludes any count-prefix digits; ``count`` defaults to 1.
    """

    keys: tuple[Key, ...]
    count: int = 1


Handler = Callable[[Match], None]


@dataclass(frozen=True)
class Binding:
    """Public view of a named binding."""

    name: str
    pattern: str
    default_pattern: str


@dataclass
class NamedBinding:
    default_pattern: str
    current_pattern: str
    handler: Handler

    def view(self, name: str) -> Binding:
        return Binding(name=name, pattern=self.current_pattern, default_pattern=self.default_pattern)
