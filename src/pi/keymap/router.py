"""Pattern router: a prefix tree of key sequences mapped to handlers.

A ``Router`` is one input mode. Patterns are compiled once at registration
and stored in a trie keyed by :class:`~pi.keymap.keys.Key`; matching walks
the trie and reports the longest handler found plus whether a longer
pattern could still match with more input.

Registration is single-writer: register everything before dispatching,
or synchronize externally.
"""

from __future__ import annotations

import logging
from typing import IO, Any, Callable, Protocol, Sequence

from pi.keymap import config
from pi.keymap.bindings import Binding, Handler, Match, NamedBinding
from pi.keymap.keys import Key, generates_escape_sequence
from pi.keymap.pattern import expand_aliases, parse_pattern

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0

Hook = Callable[[Match], None]
MessageHandler = Callable[[Match], Any]


class Sender(Protocol):
    """Anything that accepts application messages, e.g. a UI event queue."""

    def send(self, msg: Any) -> None: ...


# ---------------------------------------------------------------------------
# Trie
# ---------------------------------------------------------------------------


class _TrieNode:
    __slots__ = ("children", "handler")

    def __init__(self) -> None:
        self.children: dict[Key, _TrieNode] = {}
        self.handler: Handler | None = None


class _Trie:
    """Compiled pattern storage, shared between a router and its clones."""

    def __init__(self) -> None:
        self.root = _TrieNode()
        self.has_escape_sequences = False

    def insert(self, keys: Sequence[Key], handler: Handler) -> None:
        if any(generates_escape_sequence(k) for k in keys):
            self.has_escape_sequences = True

        node = self.root
        for key in keys:
            child = node.children.get(key)
            if child is None:
                child = _TrieNode()
                node.children[key] = child
            node = child
        node.handler = handler

    def remove(self, keys: Sequence[Key]) -> None:
        node = self.root
        for key in keys:
            child = node.children.get(key)
            if child is None:
                return
            node = child
        # Branches are left in place; only the handler goes.
        node.handler = None

    def match(self, keys: Sequence[Key]) -> tuple[Handler | None, int, bool]:
        node = self.root
        best: Handler | None = None
        consumed = 0

        for index, key in enumerate(keys):
            child = node.children.get(key)
            if child is None:
                return best, consumed, False
            node = child
            if node.handler is not None:
                best = node.handler
                consumed = index + 1

        return best, consumed, bool(node.children)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class _Forwarding:
    """Handler whose return value is sent to a router's sender.

    Called directly it uses the registering router; :meth:`Router.fire`
    substitutes the firing router.
    """

    __slots__ = ("fn", "owner")

    def __init__(self, fn: MessageHandler, owner: Router) -> None:
        self.fn = fn
        self.owner = owner

    def __call__(self, m: Match) -> None:
        self.owner._send(self.fn(m))


class Router:
    """Maps vim-style key patterns to handlers.

    Example::

        router = Router().set_timeout(0.5)
        router.handle("j", lambda m: move(m.count))
        router.handle("gg", lambda m: go_top())
        router.handle("<C-w>j", lambda m: focus_below())
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        name: str = "",
        sender: Sender | None = None,
    ) -> None:
        self._trie = _Trie()
        self._timeout = timeout
        self._name = name
        self._sender = sender
        self._aliases: dict[str, str] = {}
        self._named: dict[str, NamedBinding] = {}
        self._binding_order: list[str] = []
        self._before_hooks: list[Hook] = []
        self._after_hooks: list[Hook] = []

    # -- settings -----------------------------------------------------------

    @property
    def timeout(self) -> float:
        """Seconds to wait before firing an ambiguous match."""
        return self._timeout

    def set_timeout(self, seconds: float) -> Router:
        self._timeout = seconds
        return self

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> Router:
        self._name = name
        return self

    @property
    def sender(self) -> Sender | None:
        return self._sender

    def set_sender(self, sender: Sender | None) -> Router:
        self._sender = sender
        return self

    @property
    def has_escape_sequences(self) -> bool:
        """Whether any registered pattern needs multi-byte terminal decoding.

        When ``False`` a :class:`~pi.keymap.reader.Reader` can resolve a lone
        ESC byte immediately instead of waiting for a possible sequence.
        """
        return self._trie.has_escape_sequences

    # -- aliases ------------------------------------------------------------

    def set_alias(self, name: str, expansion: str) -> Router:
        """Define ``<name>`` as shorthand for *expansion* in later patterns.

        Example::

            router.set_alias("Leader", ",")
            router.handle("<Leader>f", find_files)  # registers ",f"
        """
        self._aliases[name.lower()] = expansion
        return self

    @property
    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def compile(self, pattern: str) -> tuple[Key, ...]:
        """Expand aliases and compile *pattern* into keys."""
        return parse_pattern(expand_aliases(pattern, self._aliases))

    # -- registration -------------------------------------------------------

    def handle(self, pattern: str, handler: Handler) -> None:
        """Register *handler* for *pattern*, replacing any previous handler."""
        keys = self.compile(pattern)
        if not keys:
            return
        self._trie.insert(keys, handler)

    def unhandle(self, pattern: str) -> None:
        """Remove the handler registered for exactly *pattern*."""
        keys = self.compile(pattern)
        if not keys:
            return
        self._trie.remove(keys)

    def handle_msg(self, pattern: str, fn: MessageHandler) -> None:
        """Register a handler whose return value is forwarded to the sender."""
        self.handle(pattern, self._forwarding(fn))

    def handle_named(self, name: str, default_pattern: str, handler: Handler) -> None:
        """Register a handler under a semantic action name.

        Named bindings can later be rebound by name (see :meth:`rebind`) or
        from a config file (see :meth:`load_bindings`).
        """
        if name not in self._named:
            self._binding_order.append(name)
        self._named[name] = NamedBinding(
            default_pattern=default_pattern,
            current_pattern=default_pattern,
            handler=handler,
        )
        self.handle(default_pattern, handler)

    def handle_named_msg(self, name: str, default_pattern: str, fn: MessageHandler) -> None:
        self.handle_named(name, default_pattern, self._forwarding(fn))

    def _forwarding(self, fn: MessageHandler) -> Handler:
        return _Forwarding(fn, self)

    def _send(self, msg: Any) -> None:
        if msg is None:
            return
        if self._sender is None:
            logger.debug("router %r has no sender, dropping %r", self._name, msg)
            return
        self._sender.send(msg)

    # -- named bindings -----------------------------------------------------

    def rebind(self, name: str, pattern: str) -> bool:
        """Move a named binding to *pattern*. Returns ``False`` if unknown."""
        binding = self._named.get(name)
        if binding is None:
            return False
        self.unhandle(binding.current_pattern)
        binding.current_pattern = pattern
        self.handle(pattern, binding.handler)
        return True

    def reset(self, name: str) -> bool:
        """Restore a named binding to its default pattern."""
        binding = self._named.get(name)
        if binding is None:
            return False
        if binding.current_pattern == binding.default_pattern:
            return True
        return self.rebind(name, binding.default_pattern)

    def reset_all(self) -> None:
        for name in list(self._named):
            self.reset(name)

    def bindings(self) -> list[Binding]:
        """Named bindings in registration order."""
        return [self._named[name].view(name) for name in self._binding_order]

    def bindings_map(self) -> dict[str, str]:
        return {name: b.current_pattern for name, b in self._named.items()}

    def default_bindings_map(self) -> dict[str, str]:
        return {name: b.default_pattern for name, b in self._named.items()}

    def apply_bindings(self, bindings: dict[str, str]) -> None:
        """Rebind every known name in *bindings*; unknown names are ignored."""
        for name, pattern in bindings.items():
            self.rebind(name, pattern)

    # -- config -------------------------------------------------------------

    def load_bindings(self, app_name: str) -> None:
        """Apply the shared config file (see :func:`pi.keymap.config.config_path`)."""
        self.load_bindings_from(config.config_path(), app_name)

    def load_bindings_from(self, path: str | None, app_name: str) -> None:
        config.apply_config(self, config.load_config(path), app_name)

    def write_default_bindings(self, stream: IO[str], app_name: str) -> None:
        config.write_default_bindings(self, stream, app_name)

    # -- matching -----------------------------------------------------------

    def match(self, keys: Sequence[Key]) -> tuple[Handler | None, int, bool]:
        """Walk the trie along *keys*.

        Returns ``(handler, consumed, has_longer_prefix)``: the handler of the
        longest registered pattern found along the walked path and its length,
        and whether the buffer was fully consumed at a node that still has
        children (so more input could produce a longer match).
        """
        return self._trie.match(keys)

    # -- hooks --------------------------------------------------------------

    def before(self, hook: Hook) -> Router:
        """Call *hook* right before any handler of this router fires."""
        self._before_hooks.append(hook)
        return self

    def after(self, hook: Hook) -> Router:
        """Call *hook* right after any handler of this router returns."""
        self._after_hooks.append(hook)
        return self

    def copy_hooks(self, other: Router) -> Router:
        """Append *other*'s before/after hooks to this router's lists."""
        self._before_hooks.extend(other._before_hooks)
        self._after_hooks.extend(other._after_hooks)
        return self

    def fire(self, handler: Handler, m: Match) -> None:
        """Run *handler* between this router's hooks.

        Message handlers forward to this router's sender, so a clone with
        its own sender receives the messages of the handlers it fires.
        """
        for hook in list(self._before_hooks):
            hook(m)
        if isinstance(handler, _Forwarding):
            self._send(handler.fn(m))
        else:
            handler(m)
        for hook in list(self._after_hooks):
            hook(m)

    def clone(self) -> Router:
        """Return a router that shares this router's compiled patterns.

        The trie is shared, so registrations made through either router are
        visible to both. Settings, aliases and named-binding bookkeeping are
        copied; hooks are not.
        Message handlers fired through the clone go to the clone's sender.
        """
        other = Router(timeout=self._timeout, name=self._name, sender=self._sender)
        other._trie = self._trie
        other._aliases = dict(self._aliases)
        other._named = {
            name: NamedBinding(b.default_pattern, b.current_pattern, b.handler)
            for name, b in self._named.items()
        }
        other._binding_order = list(self._binding_order)
        return other

    def __repr__(self) -> str:
        return f"Router(name={self._name!r}, timeout={self._timeout!r})"
