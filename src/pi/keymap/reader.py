"""Terminal byte-stream decoder.

Reads raw (unbuffered, raw-mode) terminal input and turns it into
:class:`~pi.keymap.keys.Key` values. A lone ESC byte cannot be told apart
from the first byte of an escape sequence without waiting, so the reader
keeps one background read in flight and waits a bounded time
(``escape_timeout``) for follow-up bytes. When no registered pattern needs
escape sequences the wait is skipped entirely.

Decoding is total: malformed or unknown sequences come out as Escape. The
only failure is :class:`EOFError` once the source is exhausted.
"""

from __future__ import annotations

import logging
import os
import queue
import threading
from typing import Callable, Iterator, Protocol

from pi.keymap.keys import Key, Modifier, Special

logger = logging.getLogger(__name__)

DEFAULT_ESCAPE_TIMEOUT = 0.05

ESC = 0x1B

_BUFFER_SIZE = 64
_READ_CHUNK = 32
# Bytes after ESC scanned for a CSI terminator before giving up
_CSI_SCAN_LIMIT = 12

ESCAPE_KEY = Key(special=Special.ESCAPE)


class ByteSource(Protocol):
    """Anything with ``read(n)``; ``b""`` signals end of stream."""

    def read(self, n: int, /) -> bytes: ...


class FileDescriptorSource:
    """Byte source over a raw file descriptor, e.g. a tty in raw mode.

    ``os.read`` returns whatever is available (at least one byte), which is
    what the reader wants; buffered file objects would block for *n* bytes.
    """

    def __init__(self, fd: int) -> None:
        self._fd = fd

    def read(self, n: int) -> bytes:
        return os.read(self._fd, n)

    def fileno(self) -> int:
        return self._fd


# ---------------------------------------------------------------------------
# Byte and sequence tables
# ---------------------------------------------------------------------------

_SINGLE_BYTE_KEYS: dict[int, Key] = {
    0: Key(rune=" ", mod=Modifier.CTRL),
    8: Key(special=Special.BACKSPACE),
    9: Key(special=Special.TAB),
    10: Key(special=Special.ENTER),
    13: Key(special=Special.ENTER),
    27: ESCAPE_KEY,
    32: Key(special=Special.SPACE),
    127: Key(special=Special.BACKSPACE),
}

# ESC [ <letter>
_CSI_PLAIN: dict[str, Key] = {
    "A": Key(special=Special.UP),
    "B": Key(special=Special.DOWN),
    "C": Key(special=Special.RIGHT),
    "D": Key(special=Special.LEFT),
    "H": Key(special=Special.HOME),
    "F": Key(special=Special.END),
    "Z": Key(special=Special.TAB, mod=Modifier.SHIFT),
}

# ESC [ 1 ; <mod> <letter>
_CSI_MODIFIED: dict[str, Special] = {
    "A": Special.UP,
    "B": Special.DOWN,
    "C": Special.RIGHT,
    "D": Special.LEFT,
    "H": Special.HOME,
    "F": Special.END,
    "P": Special.F1,
    "Q": Special.F2,
    "R": Special.F3,
    "S": Special.F4,
}

# ESC [ <n> ~  and  ESC [ <n> ; <mod> ~
_TILDE_KEYS: dict[int, Special] = {
    1: Special.HOME,
    2: Special.INSERT,
    3: Special.DELETE,
    4: Special.END,
    5: Special.PAGE_UP,
    6: Special.PAGE_DOWN,
    7: Special.HOME,
    8: Special.END,
    11: Special.F1,
    12: Special.F2,
    13: Special.F3,
    14: Special.F4,
    15: Special.F5,
    17: Special.F6,
    18: Special.F7,
    19: Special.F8,
    20: Special.F9,
    21: Special.F10,
    23: Special.F11,
    24: Special.F12,
}

# ESC O <letter>
_SS3_KEYS: dict[str, Special] = {
    "P": Special.F1,
    "Q": Special.F2,
    "R": Special.F3,
    "S": Special.F4,
    "H": Special.HOME,
    "F": Special.END,
    "A": Special.UP,
    "B": Special.DOWN,
    "C": Special.RIGHT,
    "D": Special.LEFT,
}


# ---------------------------------------------------------------------------
# Pure decoding helpers
# ---------------------------------------------------------------------------


def decode_byte(b: int) -> Key:
    """Decode a single non-sequence byte."""
    key = _SINGLE_BYTE_KEYS.get(b)
    if key is not None:
        return key
    if 1 <= b <= 26:
        return Key(rune=chr(ord("a") + b - 1), mod=Modifier.CTRL)
    return Key(rune=chr(b))


def parse_modifier(text: str) -> Modifier | None:
    """Decode an xterm modifier parameter: ``1 + shift(1) + alt(2) + ctrl(4)``."""
    if not text.isdigit():
        return None
    bits = int(text) - 1
    if bits < 0:
        return None
    mod = Modifier.NONE
    if bits & 1:
        mod |= Modifier.SHIFT
    if bits & 2:
        mod |= Modifier.ALT
    if bits & 4:
        mod |= Modifier.CTRL
    return mod


def parse_csi(body: bytes) -> Key:
    """Decode the bytes of a CSI sequence following ``ESC [``."""
    if not body:
        return ESCAPE_KEY
    text = body.decode("ascii", errors="replace")

    plain = _CSI_PLAIN.get(text)
    if plain is not None:
        return plain

    final, params = text[-1], text[:-1]
    if final == "~":
        return _parse_tilde(params)

    special = _CSI_MODIFIED.get(final)
    if special is not None and ";" in params:
        number, _, mod_text = params.partition(";")
        mod = parse_modifier(mod_text)
        if number in ("", "1") and mod is not None:
            return Key(special=special, mod=mod)

    return ESCAPE_KEY


def _parse_tilde(params: str) -> Key:
    number, sep, mod_text = params.partition(";")
    mod: Modifier | None = Modifier.NONE
    if sep:
        mod = parse_modifier(mod_text)
    if not number.isdigit() or mod is None:
        return ESCAPE_KEY
    special = _TILDE_KEYS.get(int(number))
    if special is None:
        return ESCAPE_KEY
    return Key(special=special, mod=mod)


def parse_ss3(final: int) -> Key:
    """Decode the byte following ``ESC O``."""
    special = _SS3_KEYS.get(chr(final))
    if special is None:
        return ESCAPE_KEY
    return Key(special=special)


def _is_csi_final(c: int) -> bool:
    return 0x41 <= c <= 0x5A or 0x61 <= c <= 0x7A or c == 0x7E


def _utf8_length(lead: int) -> int:
    """Number of continuation bytes announced by a UTF-8 lead byte."""
    if 0xC0 <= lead < 0xE0:
        return 1
    if 0xE0 <= lead < 0xF0:
        return 2
    if 0xF0 <= lead < 0xF8:
        return 3
    return 0


# ---------------------------------------------------------------------------
# Reader
# ---------------------------------------------------------------------------


class Reader:
    """Reads keys from a raw byte source.

    Example::

        reader = Reader(FileDescriptorSource(sys.stdin.fileno()))
        while True:
            key = reader.read_key()
    """

    def __init__(self, source: ByteSource, *, escape_timeout: float = DEFAULT_ESCAPE_TIMEOUT) -> None:
        self._source = source
        read1 = getattr(source, "read1", None)
        self._read: Callable[[int], bytes] = read1 if callable(read1) else source.read
        self._timeout = escape_timeout
        self._parse_escape_sequences = True

        self._buf = bytearray(_BUFFER_SIZE)
        self._pos = 0
        self._end = 0

        self._results: queue.Queue[tuple[bytes, BaseException | None]] = queue.Queue(maxsize=1)
        self._read_pending = False
        self._eof = False
        self._error: BaseException | None = None

    # -- settings -----------------------------------------------------------

    @property
    def escape_timeout(self) -> float:
        return self._timeout

    def set_escape_timeout(self, seconds: float) -> Reader:
        """How long to wait after ESC for the rest of a sequence."""
        self._timeout = seconds
        return self

    @property
    def parse_escape_sequences(self) -> bool:
        return self._parse_escape_sequences

    def set_parse_escape_sequences(self, parse: bool) -> Reader:
        """When off, byte 27 is always Escape and never waits.

        ``Router.has_escape_sequences`` tells whether decoding is needed.
        """
        self._parse_escape_sequences = parse
        return self

    # -- buffer management --------------------------------------------------

    def _available(self) -> int:
        return self._end - self._pos

    def _compact(self) -> None:
        available = self._available()
        if available and self._pos:
            self._buf[:available] = self._buf[self._pos : self._end]
        self._pos = 0
        self._end = available

    def _read_size(self) -> int:
        return max(1, min(len(self._buf) - self._end, _READ_CHUNK))

    def _accept(self, data: bytes, error: BaseException | None) -> None:
        self._read_pending = False
        if error is not None:
            self._error = error
        elif not data:
            self._eof = True
        if not data:
            return
        if self._end + len(data) > len(self._buf):
            self._compact()
        if self._end + len(data) > len(self._buf):
            self._buf.extend(bytes(self._end + len(data) - len(self._buf)))
        self._buf[self._end : self._end + len(data)] = data
        self._end += len(data)

    def _background_read(self, size: int) -> None:
        try:
            data = self._read(size)
        except Exception as exc:  # handed to the reading thread
            self._results.put((b"", exc))
            return
        self._results.put((data, None))

    def _start_read(self) -> None:
        self._read_pending = True
        thread = threading.Thread(
            target=self._background_read,
            args=(self._read_size(),),
            name="pi-keymap-reader",
            daemon=True,
        )
        thread.start()

    def _ensure_bytes(self) -> None:
        """Block until at least one byte is buffered.

        Raises ``EOFError`` (or the source's own error) if the source is
        exhausted and nothing is buffered.
        """
        if self._available():
            return
        self._compact()

        if self._read_pending:
            self._accept(*self._results.get())
        elif not self._eof and self._error is None:
            self._accept(self._read(self._read_size()), None)

        if self._available() == 0:
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            raise EOFError("end of input")

    def _wait_for_bytes(self, n: int) -> None:
        """Wait up to ``escape_timeout`` for more bytes if fewer than *n* are buffered.

        A read that times out stays in flight; its bytes are picked up by
        the next call.
        """
        if self._available() >= n:
            return
        self._compact()
        if self._eof or self._error is not None:
            return
        if not self._read_pending:
            self._start_read()
        try:
            result = self._results.get(timeout=self._timeout)
        except queue.Empty:
            return
        self._accept(*result)

    def _fill(self, n: int) -> None:
        """Like ``_wait_for_bytes`` but keeps waiting while bytes trickle in."""
        while self._available() < n:
            before = self._available()
            self._wait_for_bytes(n)
            if self._available() == before:
                return

    # -- decoding -----------------------------------------------------------

    def read_key(self) -> Key:
        """Read and decode the next key."""
        self._ensure_bytes()
        b = self._buf[self._pos]
        self._pos += 1

        if b == ESC:
            return self._read_escape()
        if b >= 0x80:
            return self._read_utf8(b)
        return decode_byte(b)

    def _read_escape(self) -> Key:
        if not self._parse_escape_sequences:
            return ESCAPE_KEY

        self._wait_for_bytes(1)
        if self._available() == 0:
            return ESCAPE_KEY

        nxt = self._buf[self._pos]
        if nxt == ord("O"):
            self._fill(2)
            if self._available() >= 2:
                final = self._buf[self._pos + 1]
                self._pos += 2
                return parse_ss3(final)
        elif nxt == ord("["):
            return self._read_csi()

        if 32 <= nxt < 127:
            self._pos += 1
            return Key(rune=chr(nxt), mod=Modifier.ALT)
        return ESCAPE_KEY

    def _read_csi(self) -> Key:
        # self._pos is at "["; scanned counts bytes from there
        scanned = 1
        while True:
            while scanned < self._available():
                c = self._buf[self._pos + scanned]
                scanned += 1
                if _is_csi_final(c):
                    return self._take_csi(scanned)
                if scanned >= _CSI_SCAN_LIMIT:
                    return self._take_csi(scanned)
            before = self._available()
            self._wait_for_bytes(scanned + 1)
            if self._available() == before:
                break

        if scanned == 1:
            # ESC [ and nothing else
            self._pos += 1
            return Key(rune="[", mod=Modifier.ALT)
        return self._take_csi(scanned)

    def _take_csi(self, length: int) -> Key:
        body = bytes(self._buf[self._pos + 1 : self._pos + length])
        self._pos += length
        key = parse_csi(body)
        if key is ESCAPE_KEY:
            logger.debug("unrecognized CSI sequence %r", body)
        return key

    def _read_utf8(self, lead: int) -> Key:
        need = _utf8_length(lead)
        if need:
            self._fill(need)
        if need and self._available() >= need:
            raw = bytes([lead]) + bytes(self._buf[self._pos : self._pos + need])
            try:
                rune = raw.decode("utf-8")
            except UnicodeDecodeError:
                pass
            else:
                self._pos += need
                return Key(rune=rune)
        return Key(rune=chr(lead))

    def __iter__(self) -> Iterator[Key]:
        """Yield keys until the source is exhausted."""
        while True:
            try:
                yield self.read_key()
            except EOFError:
                return
