"""Key dispatch: count prefixes, sequence buffering and timeout disambiguation.

``Input`` owns a stack of routers (input modes) and feeds keys to the one on
top. A key sequence that is both a complete pattern and the prefix of a
longer one (``g`` vs ``gg``) is held behind a single-shot timer; the next key
either extends it or supersedes it, and if nothing arrives in time the
shorter match fires.

All pending state is guarded by one lock. Handlers always run with the lock
released, so they may call back into the same ``Input`` (push a mode, start
a macro) without deadlocking.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from pi.keymap.bindings import Handler, Match
from pi.keymap.keys import Key, Special, format_keys
from pi.keymap.router import Router

if TYPE_CHECKING:
    from pi.keymap.reader import Reader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pending:
    """Read-only view of buffered input, e.g. for a status line (``"3d"``)."""

    count: str
    keys: tuple[Key, ...]

    def __str__(self) -> str:
        return self.count + format_keys(self.keys)


@dataclass
class _Armed:
    """Snapshot of an ambiguous match waiting for its timeout."""

    router: Router
    handler: Handler
    keys: tuple[Key, ...]
    count: int
    generation: int
    timer: threading.Timer


class Input:
    """Dispatches keys through a stack of routers."""

    def __init__(self, root: Router | None) -> None:
        self._lock = threading.Lock()
        self._stack: list[Router] = [root] if root is not None else []
        self._buffer: list[Key] = []
        self._count = ""
        self._armed: _Armed | None = None
        # Bumped whenever pending state is discarded; a timer whose
        # generation no longer matches was superseded and must not fire.
        self._generation = 0

        self._recording = False
        self._macro: list[Key] = []
        self._playback_depth = 0

    # -- router stack -------------------------------------------------------

    def push(self, router: Router) -> None:
        """Make *router* the active mode."""
        with self._lock:
            self._reset_locked()
            self._stack.append(router)
            logger.debug("pushed router %r (depth %d)", router.name, len(self._stack))

    def pop(self) -> None:
        """Return to the previous mode. The root router is never popped."""
        with self._lock:
            if len(self._stack) <= 1:
                return
            self._reset_locked()
            router = self._stack.pop()
            logger.debug("popped router %r (depth %d)", router.name, len(self._stack))

    @property
    def current(self) -> Router | None:
        with self._lock:
            return self._stack[-1] if self._stack else None

    @property
    def depth(self) -> int:
        with self._lock:
            return len(self._stack)

    # -- dispatch -----------------------------------------------------------

    def dispatch(self, key: Key) -> bool:
        """Process one key. Returns ``True`` if the key was accepted.

        Accepted covers both "a handler fired" and "waiting for more keys";
        ``False`` means the key matched nothing in the active router.
        """
        with self._lock:
            if self._recording and self._playback_depth == 0:
                self._macro.append(key)

            if not self._stack:
                return False
            router = self._stack[-1]

            if not self._buffer and self._is_count_digit(key):
                self._count += key.rune
                return True

            was_pending = self._armed is not None
            self._disarm_locked()
            self._buffer.append(key)

            handler, consumed, longer = router.match(self._buffer)

            if was_pending and consumed < len(self._buffer) and not longer:
                logger.debug("abandoned pending sequence %s", format_keys(self._buffer))
                self._reset_locked()
                return False

            if handler is None:
                if longer:
                    return True
                logger.debug("no match for %s", format_keys(self._buffer))
                self._reset_locked()
                return False

            if longer:
                self._arm_locked(router, handler, consumed)
                return True

            keys = tuple(self._buffer[:consumed])
            del self._buffer[:consumed]
            m = Match(keys=keys, count=self._take_count_locked())

        router.fire(handler, m)
        return True

    def _is_count_digit(self, key: Key) -> bool:
        if key.mod:
            return False
        if key.special is not Special.NONE or len(key.rune) != 1:
            return False
        if not self._count:
            # A leading 0 is a key of its own (vim: start of line)
            return "1" <= key.rune <= "9"
        return "0" <= key.rune <= "9"

    def _parse_count_locked(self) -> int:
        if not self._count:
            return 1
        count = int(self._count)
        return count if count >= 1 else 1

    def _take_count_locked(self) -> int:
        count = self._parse_count_locked()
        self._count = ""
        return count

    # -- pending match ------------------------------------------------------

    def _arm_locked(self, router: Router, handler: Handler, consumed: int) -> None:
        generation = self._generation
        timer = threading.Timer(router.timeout, self._on_timeout, args=(generation,))
        timer.daemon = True
        self._armed = _Armed(
            router=router,
            handler=handler,
            keys=tuple(self._buffer[:consumed]),
            count=self._parse_count_locked(),
            generation=generation,
            timer=timer,
        )
        timer.start()
        logger.debug(
            "armed %s for %.3fs (generation %d)",
            format_keys(self._armed.keys),
            router.timeout,
            generation,
        )

    def _disarm_locked(self) -> None:
        if self._armed is not None:
            self._armed.timer.cancel()
            self._armed = None
        self._generation += 1

    def _reset_locked(self) -> None:
        self._disarm_locked()
        self._buffer.clear()
        self._count = ""

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            armed = self._armed
            if armed is None or armed.generation != generation:
                logger.debug("timer for generation %d superseded", generation)
                return
            self._armed = None
            self._generation += 1
            del self._buffer[: len(armed.keys)]
            self._count = ""

        armed.router.fire(armed.handler, Match(keys=armed.keys, count=armed.count))

    def flush(self) -> None:
        """Fire a pending ambiguous match now instead of waiting for its timer.

        Use when no more input is coming. Any other buffered keys are dropped.
        """
        with self._lock:
            armed = self._armed
            if armed is None:
                return
            self._reset_locked()

        armed.router.fire(armed.handler, Match(keys=armed.keys, count=armed.count))

    def clear(self) -> None:
        """Drop buffered keys, count and any pending match without firing."""
        with self._lock:
            self._reset_locked()

    def pending(self) -> Pending:
        with self._lock:
            return Pending(count=self._count, keys=tuple(self._buffer))

    # -- macros -------------------------------------------------------------

    def start_recording(self) -> None:
        """Capture every key dispatched from now on (playback excluded)."""
        with self._lock:
            self._recording = True
            self._macro = []
            logger.debug("macro recording started")

    def stop_recording(self) -> tuple[Key, ...]:
        """Stop capturing and return the macro.

        The last captured key is dropped: it is the key whose handler
        stopped the recording.
        """
        with self._lock:
            self._recording = False
            macro = tuple(self._macro[:-1])
            self._macro = []
            logger.debug("macro recording stopped: %s", format_keys(macro))
            return macro

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._recording

    def play_macro(self, keys: Iterable[Key]) -> None:
        """Dispatch *keys* in order, synchronously, without recording them."""
        with self._lock:
            self._playback_depth += 1
        try:
            for key in keys:
                self.dispatch(key)
        finally:
            with self._lock:
                self._playback_depth -= 1

    # -- input loop ---------------------------------------------------------

    def run(self, reader: Reader, after_dispatch: Callable[[bool], None] | None = None) -> None:
        """Read keys from *reader* and dispatch them until the stream ends.

        The reader only waits on a lone ESC when the active router has
        patterns that need multi-byte decoding. End of stream surfaces as
        :class:`EOFError`.
        """
        while True:
            router = self.current
            if router is not None:
                reader.set_parse_escape_sequences(router.has_escape_sequences)
            key = reader.read_key()
            handled = self.dispatch(key)
            if after_dispatch is not None:
                after_dispatch(handled)
