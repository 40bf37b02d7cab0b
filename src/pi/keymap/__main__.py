"""Key debugger: prints decoded keys and the actions they trigger.

Run ``python -m pi.keymap`` (or ``pi-keymap``) in a terminal and press keys.
``q`` quits, ``<C-r>`` starts and stops macro recording, ``@`` replays the
last macro.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import termios
import tty

from pi.keymap.bindings import Match
from pi.keymap.config import ConfigError
from pi.keymap.input import Input
from pi.keymap.keys import Key, format_keys
from pi.keymap.reader import FileDescriptorSource, Reader
from pi.keymap.router import Router

logger = logging.getLogger(__name__)

DEFAULT_APP = "pi-keymap"

# name -> default pattern; every action just reports itself
DEMO_BINDINGS: dict[str, str] = {
    "down": "j",
    "up": "k",
    "top": "gg",
    "bottom": "G",
    "delete_line": "dd",
    "half_page_down": "<C-d>",
    "arrow_up": "<Up>",
}


class _Quit(Exception):
    pass


def _emit(text: str) -> None:
    # Raw mode disables output post-processing, so write CRLF explicitly
    sys.stdout.write(text + "\r\n")
    sys.stdout.flush()


class _EchoingReader:
    """Wraps a reader and prints every key it decodes."""

    def __init__(self, reader: Reader) -> None:
        self._reader = reader

    def set_parse_escape_sequences(self, parse: bool) -> Reader:
        return self._reader.set_parse_escape_sequences(parse)

    def read_key(self) -> Key:
        key = self._reader.read_key()
        _emit(f"key  {key!s:<12} {key!r}")
        return key


class KeyDebugger:
    def __init__(self, app_name: str) -> None:
        self.router = Router(name=app_name).set_timeout(0.5)
        self.input = Input(self.router)
        self._macro: tuple[Key, ...] = ()

        for name, pattern in DEMO_BINDINGS.items():
            self.router.handle_named(name, pattern, self._reporter(name))
        self.router.handle_named("quit", "q", self._quit)
        self.router.handle_named("record_macro", "<C-r>", self._toggle_recording)
        self.router.handle_named("play_macro", "@", self._play_macro)

    def _reporter(self, name: str):
        def report(m: Match) -> None:
            _emit(f"  -> {name} x{m.count} ({format_keys(m.keys)})")

        return report

    def _quit(self, m: Match) -> None:
        raise _Quit

    def _toggle_recording(self, m: Match) -> None:
        if self.input.is_recording:
            self._macro = self.input.stop_recording()
            _emit(f"  -> recorded {format_keys(self._macro) or '(empty)'}")
        else:
            self.input.start_recording()
            _emit("  -> recording")

    def _play_macro(self, m: Match) -> None:
        _emit(f"  -> replaying {format_keys(self._macro) or '(empty)'} x{m.count}")
        for _ in range(m.count):
            self.input.play_macro(self._macro)

    def _after_dispatch(self, handled: bool) -> None:
        if not handled:
            _emit("  (no binding)")
            return
        pending = self.input.pending()
        if pending.count or pending.keys:
            _emit(f"  pending {pending}")

    def run(self, reader: Reader) -> None:
        try:
            self.input.run(_EchoingReader(reader), self._after_dispatch)  # type: ignore[arg-type]
        except _Quit:
            self.input.clear()
        except EOFError:
            self.input.flush()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pi-keymap", description="Vim-style key routing debugger")
    parser.add_argument("--app", default=DEFAULT_APP, help=f"Config section to apply (default: {DEFAULT_APP})")
    parser.add_argument("--config", default=None, help="Keymap config file (default: XDG config dir)")
    parser.add_argument(
        "--print-defaults",
        action="store_true",
        help="Print a config template with the default bindings and exit",
    )
    parser.add_argument("--log-level", default="warning", choices=["debug", "info", "warning", "error"])
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    debugger = KeyDebugger(args.app)

    if args.print_defaults:
        debugger.router.write_default_bindings(sys.stdout, args.app)
        return

    try:
        if args.config:
            debugger.router.load_bindings_from(args.config, args.app)
        else:
            debugger.router.load_bindings(args.app)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    logger.debug("active bindings: %s", debugger.router.bindings_map())

    fd = sys.stdin.fileno()
    saved_attrs = termios.tcgetattr(fd) if os.isatty(fd) else None
    if saved_attrs is not None:
        tty.setraw(fd)
    try:
        _emit(f"pi-keymap [{args.app}]: press keys, q to quit")
        debugger.run(Reader(FileDescriptorSource(fd)))
    finally:
        if saved_attrs is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved_attrs)


if __name__ == "__main__":
    main()
