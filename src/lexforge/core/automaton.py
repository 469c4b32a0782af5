"""
Grammar-to-DFA compiler, automaton wire format, and runtime tokenizer.

compile_grammar() turns a LexerGrammar into an Automaton: one DFA per lexer mode
sharing a single state table. Automaton.as_bytes() is the artifact the embedded
generator persists; Automaton.from_bytes() and Automaton.tokenize() are what the
downstream runtime uses after selecting an artifact through the dispatch table.

Construction
- Thompson NFA over CharSet edge labels; rule references are inlined (recursion
  is rejected).
- Subset construction per mode over charset.partition() of every edge label, in
  breadth-first order with intervals visited in ascending order, so identical
  grammars always yield identical state numbering and bytes.
- A DFA state accepts the earliest-declared rule among its NFA accept states
  (ANTLR priority); tokenize() takes the longest match.

Wire format (big-endian)
    magic "LXDFA", u8 version, str grammar name
    u16 n_tokens,  n × (str name, u8 flags, u8 mode_op, u16 mode_arg)
    u16 n_modes,   n × (str name, u32 start_state)
    u32 n_states,  n × (i32 accept_token, u32 n_edges, n_edges × (u32 lo, u32 hi, u32 target))
where str is u16 byte length + UTF-8.

Notes:
    - Zero-IO, stdlib only.
"""

from __future__ import annotations

import struct
from bisect import bisect_right
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass

from .charset import CharSet, partition
from .constants import AUTOMATON_FORMAT_VERSION, AUTOMATON_MAGIC
from .errors import GrammarParseError, LexError
from .lexgrammar import DEFAULT_MODE, Alt, Chars, LexerGrammar, LexerRule, Node, Not, Ref, Repeat, Seq

__all__ = [
    "FLAG_SKIP",
    "FLAG_HIDDEN",
    "FLAG_MORE",
    "MODE_NONE",
    "MODE_SET",
    "MODE_PUSH",
    "MODE_POP",
    "TokenRule",
    "DfaState",
    "Token",
    "Automaton",
    "compile_grammar",
]

FLAG_SKIP = 0x01
FLAG_HIDDEN = 0x02
FLAG_MORE = 0x04

MODE_NONE = 0
MODE_SET = 1
MODE_PUSH = 2
MODE_POP = 3


@dataclass(frozen=True, slots=True)
class TokenRule:
    """Token type emitted when a DFA state accepts."""

    name: str
    flags: int = 0
    mode_op: int = MODE_NONE
    mode_arg: int = 0


@dataclass(frozen=True, slots=True)
class DfaState:
    """
    DFA state.

    Attributes:
        accept (int): Index into Automaton.tokens, or -1 for non-accepting.
        edges (tuple[tuple[int, int, int], ...]): Sorted, disjoint (lo, hi, target).
    """

    accept: int
    edges: tuple[tuple[int, int, int], ...]

    def step(self, cp: int) -> int:
        i = bisect_right(self.edges, cp, key=lambda e: e[0]) - 1
        if i >= 0:
            lo, hi, target = self.edges[i]
            if lo <= cp <= hi:
                return target
        return -1


@dataclass(frozen=True, slots=True)
class Token:
    type: str
    text: str
    start: int
    hidden: bool = False


@dataclass(frozen=True)
class Automaton:
    """
    Compiled lexer: token table, per-mode start states and a shared state table.

    Examples:
        >>> from lexforge.core.lexgrammar import parse_grammar
        >>> dfa = compile_grammar(parse_grammar(b"lexer grammar T; ID: [a-z]+; WS: ' '+ -> skip;"))
        >>> [(t.type, t.text) for t in dfa.tokenize("ab cd")]
        [('ID', 'ab'), ('ID', 'cd')]
        >>> Automaton.from_bytes(dfa.as_bytes()) == dfa
        True
    """

    name: str
    tokens: tuple[TokenRule, ...]
    modes: tuple[tuple[str, int], ...]
    states: tuple[DfaState, ...]

    # -- serialization ------------------------------------------------------

    def as_bytes(self) -> bytes:
        """Serialize to the self-contained wire format (deterministic)."""
        out = bytearray(AUTOMATON_MAGIC)
        out += struct.pack(">B", AUTOMATON_FORMAT_VERSION)
        _pack_str(out, self.name)
        out += struct.pack(">H", len(self.tokens))
        for t in self.tokens:
            _pack_str(out, t.name)
            out += struct.pack(">BBH", t.flags, t.mode_op, t.mode_arg)
        out += struct.pack(">H", len(self.modes))
        for name, start in self.modes:
            _pack_str(out, name)
            out += struct.pack(">I", start)
        out += struct.pack(">I", len(self.states))
        for s in self.states:
            out += struct.pack(">iI", s.accept, len(s.edges))
            for lo, hi, target in s.edges:
                out += struct.pack(">III", lo, hi, target)
        return bytes(out)

    @classmethod
    def from_bytes(cls, data: bytes) -> Automaton:
        """
        Decode an automaton produced by as_bytes().

        Raises:
            ValueError: On bad magic, unsupported version, or truncated data.
        """
        if not data.startswith(AUTOMATON_MAGIC):
            raise ValueError("not a lexforge automaton (bad magic)")
        r = _Reader(data, len(AUTOMATON_MAGIC))
        try:
            (version,) = r.unpack(">B")
            if version != AUTOMATON_FORMAT_VERSION:
                raise ValueError(f"unsupported automaton format version {version}")
            name = r.string()
            (n_tokens,) = r.unpack(">H")
            tokens = []
            for _ in range(n_tokens):
                tname = r.string()
                flags, mode_op, mode_arg = r.unpack(">BBH")
                tokens.append(TokenRule(tname, flags, mode_op, mode_arg))
            (n_modes,) = r.unpack(">H")
            modes = []
            for _ in range(n_modes):
                mname = r.string()
                (start,) = r.unpack(">I")
                modes.append((mname, start))
            (n_states,) = r.unpack(">I")
            states = []
            for _ in range(n_states):
                accept, n_edges = r.unpack(">iI")
                edges = tuple(r.unpack(">III") for _ in range(n_edges))
                states.append(DfaState(accept, edges))  # type: ignore[arg-type]
        except struct.error as e:
            raise ValueError(f"truncated automaton: {e}") from e
        if r.pos != len(data):
            raise ValueError("trailing bytes after automaton")
        return cls(name, tuple(tokens), tuple(modes), tuple(states))

    # -- runtime ------------------------------------------------------------

    def mode_index(self, name: str) -> int:
        for i, (mname, _start) in enumerate(self.modes):
            if mname == name:
                return i
        raise KeyError(name)

    def tokenize(self, text: str, mode: str = DEFAULT_MODE) -> Iterator[Token]:
        """
        Split text into tokens using longest match.

        Args:
            text (str): Input to tokenize.
            mode (str): Initial lexer mode.

        Yields:
            Token: Non-skipped tokens in input order (hidden tokens are flagged).

        Raises:
            LexError: If no token matches at some offset, a popMode underflows, or
                the input ends inside a ``more`` sequence.
        """
        current = self.mode_index(mode)
        stack: list[int] = []
        pos = 0
        pending: int | None = None
        n = len(text)
        while pos < n:
            state = self.modes[current][1]
            accept, end = -1, pos
            i = pos
            while i < n:
                state = self.states[state].step(ord(text[i]))
                if state < 0:
                    break
                i += 1
                if self.states[state].accept >= 0:
                    accept, end = self.states[state].accept, i
            if accept < 0:
                raise LexError("no token matches", offset=pos)
            rule = self.tokens[accept]
            start = pos if pending is None else pending
            if rule.mode_op == MODE_SET:
                current = rule.mode_arg
            elif rule.mode_op == MODE_PUSH:
                stack.append(current)
                current = rule.mode_arg
            elif rule.mode_op == MODE_POP:
                if not stack:
                    raise LexError("popMode on empty mode stack", offset=pos)
                current = stack.pop()
            pos = end
            if rule.flags & FLAG_MORE:
                pending = start
                continue
            pending = None
            if not rule.flags & FLAG_SKIP:
                yield Token(rule.name, text[start:end], start, bool(rule.flags & FLAG_HIDDEN))
        if pending is not None:
            raise LexError("input ended inside a token", offset=pending)


def _pack_str(out: bytearray, s: str) -> None:
    raw = s.encode("utf-8")
    out += struct.pack(">H", len(raw))
    out += raw


class _Reader:
    def __init__(self, data: bytes, pos: int) -> None:
        self.data = data
        self.pos = pos

    def unpack(self, fmt: str) -> tuple[int, ...]:
        vals = struct.unpack_from(fmt, self.data, self.pos)
        self.pos += struct.calcsize(fmt)
        return vals

    def string(self) -> str:
        (length,) = self.unpack(">H")
        raw = self.data[self.pos : self.pos + length]
        if len(raw) != length:
            raise struct.error("string runs past end of data")
        self.pos += length
        return raw.decode("utf-8")


# ============================================================================
# Compiler
# ============================================================================


class _Nfa:
    """Thompson NFA; edges[s] holds (label or None for epsilon, target)."""

    def __init__(self, grammar: LexerGrammar) -> None:
        self.edges: list[list[tuple[CharSet | None, int]]] = []
        self.rules = {r.name: r for r in grammar.rules}
        self._expanding: list[str] = []

    def new_state(self) -> int:
        self.edges.append([])
        return len(self.edges) - 1

    def add(self, src: int, label: CharSet | None, dst: int) -> None:
        self.edges[src].append((label, dst))

    def build(self, node: Node, start: int) -> int:
        """Add a fragment for node beginning at start; return its end state."""
        if isinstance(node, Chars):
            end = self.new_state()
            self.add(start, node.charset, end)
            return end
        if isinstance(node, Not):
            end = self.new_state()
            label = self.charset_of(node.node, node).negate()
            if label.is_empty():
                raise GrammarParseError("~ set matches nothing", line=node.line, column=node.column)
            self.add(start, label, end)
            return end
        if isinstance(node, Seq):
            cur = start
            for item in node.items:
                cur = self.build(item, cur)
            return cur
        if isinstance(node, Alt):
            end = self.new_state()
            for item in node.items:
                s = self.new_state()
                self.add(start, None, s)
                self.add(self.build(item, s), None, end)
            return end
        if isinstance(node, Repeat):
            cur = start
            for _ in range(node.min):
                cur = self.build(node.node, cur)
            end = self.new_state()
            self.add(cur, None, end)
            if node.max is None:
                s = self.new_state()
                self.add(cur, None, s)
                e = self.build(node.node, s)
                self.add(e, None, s)
                self.add(e, None, end)
            else:
                for _ in range(node.max - node.min):
                    s = self.new_state()
                    self.add(cur, None, s)
                    cur = self.build(node.node, s)
                    self.add(cur, None, end)
            return end
        if isinstance(node, Ref):
            rule = self.resolve(node)
            self._expanding.append(rule.name)
            try:
                return self.build(rule.body, start)
            finally:
                self._expanding.pop()
        raise TypeError(f"unknown node {node!r}")

    def resolve(self, ref: Ref) -> LexerRule:
        rule = self.rules.get(ref.name)
        if rule is None:
            raise GrammarParseError(
                f"reference to undefined lexer rule {ref.name!r}", line=ref.line, column=ref.column
            )
        if ref.name in self._expanding:
            chain = " -> ".join([*self._expanding, ref.name])
            raise GrammarParseError(
                f"recursive lexer rule {chain}", line=ref.line, column=ref.column
            )
        return rule

    def charset_of(self, node: Node, at: Not) -> CharSet:
        """Set denoted by the operand of ``~``; only single-character forms qualify."""
        if isinstance(node, Chars):
            return node.charset
        if isinstance(node, Alt):
            acc = CharSet.empty()
            for item in node.items:
                acc = acc.union(self.charset_of(item, at))
            return acc
        if isinstance(node, Seq) and len(node.items) == 1:
            return self.charset_of(node.items[0], at)
        if isinstance(node, Ref):
            rule = self.resolve(node)
            self._expanding.append(rule.name)
            try:
                return self.charset_of(rule.body, at)
            finally:
                self._expanding.pop()
        raise GrammarParseError(
            "~ applies only to single-character sets", line=at.line, column=at.column
        )

    def closure(self, states: frozenset[int] | set[int]) -> frozenset[int]:
        seen = set(states)
        todo = list(states)
        while todo:
            s = todo.pop()
            for label, dst in self.edges[s]:
                if label is None and dst not in seen:
                    seen.add(dst)
                    todo.append(dst)
        return frozenset(seen)


def _token_rule(rule: LexerRule, modes: tuple[str, ...]) -> TokenRule:
    name = rule.name
    flags = 0
    mode_op, mode_arg = MODE_NONE, 0
    for cmd in rule.commands:
        if cmd.name == "skip":
            flags |= FLAG_SKIP
        elif cmd.name == "more":
            flags |= FLAG_MORE
        elif cmd.name == "channel":
            if cmd.arg not in (None, "0", "DEFAULT_TOKEN_CHANNEL"):
                flags |= FLAG_HIDDEN
        elif cmd.name == "type":
            if not cmd.arg:
                raise GrammarParseError(f"type() needs a token name in {rule.name}", line=rule.line)
            name = cmd.arg
        elif cmd.name in ("mode", "pushMode"):
            if cmd.arg not in modes:
                raise GrammarParseError(
                    f"{rule.name} switches to unknown mode {cmd.arg!r}", line=rule.line
                )
            mode_op = MODE_SET if cmd.name == "mode" else MODE_PUSH
            mode_arg = modes.index(cmd.arg)
        elif cmd.name == "popMode":
            mode_op = MODE_POP
        else:
            raise GrammarParseError(
                f"unsupported lexer command {cmd.name!r} in {rule.name}", line=rule.line
            )
    return TokenRule(name, flags, mode_op, mode_arg)


def compile_grammar(grammar: LexerGrammar) -> Automaton:
    """
    Compile a parsed grammar into a deterministic automaton.

    Args:
        grammar (LexerGrammar): Output of parse_grammar().

    Returns:
        Automaton: Token table, per-mode start states, and DFA states.

    Raises:
        GrammarParseError: On undefined or recursive references, unknown commands
            or modes, a rule that matches the empty string, or a grammar with no
            token rules.

    Notes:
        The function is pure: equal grammars produce equal automata (and bytes).
    """
    nfa = _Nfa(grammar)
    tokens: list[TokenRule] = []
    accepts: dict[int, int] = {}  # NFA end state -> token index
    mode_starts: list[int] = []

    for mode in grammar.modes:
        start = nfa.new_state()
        mode_starts.append(start)
        for rule in grammar.rules:
            if rule.fragment or rule.mode != mode:
                continue
            s = nfa.new_state()
            nfa.add(start, None, s)
            nfa._expanding.append(rule.name)
            try:
                end = nfa.build(rule.body, s)
            finally:
                nfa._expanding.pop()
            if end in nfa.closure({s}):
                raise GrammarParseError(
                    f"lexer rule {rule.name} can match the empty string", line=rule.line
                )
            accepts[end] = len(tokens)
            tokens.append(_token_rule(rule, grammar.modes))

    if not tokens:
        raise GrammarParseError(f"grammar {grammar.name} defines no lexer rules")

    labels = [label for out in nfa.edges for label, _dst in out if label is not None]
    intervals = partition(labels)
    los = [lo for lo, _hi in intervals]
    # label -> indices of the intervals it covers
    covers: dict[CharSet, list[int]] = {}
    for label in labels:
        if label in covers:
            continue
        idx: list[int] = []
        for lo, hi in label.ranges:
            i = bisect_right(los, lo) - 1
            while i < len(intervals) and intervals[i][1] <= hi:
                idx.append(i)
                i += 1
        covers[label] = idx

    index: dict[frozenset[int], int] = {}
    raw_states: list[tuple[int, list[tuple[int, int]]]] = []
    queue: deque[frozenset[int]] = deque()

    def intern(sset: frozenset[int]) -> int:
        if sset not in index:
            index[sset] = len(index)
            raw_states.append((-1, []))
            queue.append(sset)
        return index[sset]

    modes = tuple(
        (name, intern(nfa.closure({start}))) for name, start in zip(grammar.modes, mode_starts)
    )
    while queue:
        sset = queue.popleft()
        sid = index[sset]
        accept = min((accepts[s] for s in sset if s in accepts), default=-1)
        moves: dict[int, set[int]] = {}
        for s in sset:
            for label, dst in nfa.edges[s]:
                if label is None:
                    continue
                for i in covers[label]:
                    moves.setdefault(i, set()).add(dst)
        edges: list[tuple[int, int]] = []
        for i in sorted(moves):
            edges.append((i, intern(nfa.closure(moves[i]))))
        raw_states[sid] = (accept, edges)

    states = []
    for accept, edges in raw_states:
        merged: list[tuple[int, int, int]] = []
        for i, target in edges:
            lo, hi = intervals[i]
            if merged and merged[-1][2] == target and merged[-1][1] + 1 == lo:
                merged[-1] = (merged[-1][0], hi, target)
            else:
                merged.append((lo, hi, target))
        states.append(DfaState(accept, tuple(merged)))
    return Automaton(grammar.name, tuple(tokens), modes, tuple(states))
