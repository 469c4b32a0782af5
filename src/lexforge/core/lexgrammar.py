"""
Parser for the lexer subset of ANTLR 4 grammar files (.g4).

Turns grammar bytes into a LexerGrammar: an ordered list of lexer rules (with
fragments, lexer commands and modes) whose bodies are small regular-expression
trees over CharSet leaves. lexforge.core.automaton compiles the result into a DFA.

Supported
- Headers: ``lexer grammar X;`` and combined ``grammar X;``. In combined grammars
  parser rules (lower-case names) are skipped and the string literals they use
  become implicit tokens T__0, T__1, … declared ahead of the lexer rules.
- ``options {…}``, ``tokens {…}``, ``channels {…}``, ``@name {…}`` and ``import``
  are skipped; ``mode NAME;`` starts a new lexer mode.
- Elements: '...' literals, [...] sets, 'a'..'z' ranges, ``.``, ``~`` negation,
  rule references, grouping, postfix ``* + ?`` (optionally non-greedy).
- Commands after ``->``: skip, more, channel(X), type(X), mode(M), pushMode(M),
  popMode.

Notes:
    - Zero-IO, stdlib only.
    - Every failure is a GrammarParseError carrying line and column.
    - Embedded actions ``{…}`` and predicates ``{…}?`` are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .charset import CharSet
from .constants import MAX_CODE_POINT
from .errors import GrammarParseError

__all__ = [
    "Chars",
    "Seq",
    "Alt",
    "Repeat",
    "Ref",
    "Not",
    "Node",
    "LexerCommand",
    "LexerRule",
    "LexerGrammar",
    "DEFAULT_MODE",
    "parse_grammar",
]

DEFAULT_MODE = "DEFAULT_MODE"


# ============================================================================
# Rule body tree
# ============================================================================


@dataclass(frozen=True, slots=True)
class Chars:
    """Match exactly one code point from a set."""

    charset: CharSet


@dataclass(frozen=True, slots=True)
class Seq:
    items: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Alt:
    items: tuple[Node, ...]


@dataclass(frozen=True, slots=True)
class Repeat:
    """Repetition: (0, None) is ``*``, (1, None) is ``+``, (0, 1) is ``?``."""

    node: Node
    min: int
    max: int | None


@dataclass(frozen=True, slots=True)
class Ref:
    """Reference to another lexer rule or fragment, resolved at compile time."""

    name: str
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class Not:
    """``~x``: one code point outside the set denoted by x (resolved at compile time)."""

    node: Node
    line: int
    column: int


Node = Union[Chars, Seq, Alt, Repeat, Ref, Not]


@dataclass(frozen=True, slots=True)
class LexerCommand:
    name: str
    arg: str | None = None


@dataclass(frozen=True, slots=True)
class LexerRule:
    """
    One lexer rule.

    Attributes:
        name (str): Rule (token) name.
        body (Node): Regular tree to match.
        fragment (bool): Fragments are only usable via references.
        commands (tuple[LexerCommand, ...]): Commands after ``->``.
        mode (str): Lexer mode the rule belongs to.
        line (int): Declaration line, for error reporting.
    """

    name: str
    body: Node
    fragment: bool = False
    commands: tuple[LexerCommand, ...] = ()
    mode: str = DEFAULT_MODE
    line: int = 0


@dataclass(frozen=True, slots=True)
class LexerGrammar:
    """
    Parsed grammar.

    Attributes:
        name (str): Grammar name from the header.
        combined (bool): True for ``grammar X;`` (parser rules were skipped).
        rules (tuple[LexerRule, ...]): Rules in priority order (implicit literal
            tokens first, then declaration order).
        modes (tuple[str, ...]): DEFAULT_MODE followed by declared modes.
    """

    name: str
    combined: bool
    rules: tuple[LexerRule, ...]
    modes: tuple[str, ...] = (DEFAULT_MODE,)

    def rule(self, name: str) -> LexerRule | None:
        for r in self.rules:
            if r.name == name:
                return r
        return None


# ============================================================================
# Tokenizer
# ============================================================================

_PUNCT = {
    ":": "COLON",
    ";": "SEMI",
    "|": "OR",
    "(": "LPAREN",
    ")": "RPAREN",
    "*": "STAR",
    "+": "PLUS",
    "?": "QUESTION",
    "~": "NOT",
    ",": "COMMA",
    "=": "ASSIGN",
    "@": "AT",
    "#": "POUND",
    "<": "LT",
    ">": "GT",
}


@dataclass(slots=True)
class _Tok:
    kind: str
    text: str
    line: int
    column: int


@dataclass(slots=True)
class _Scanner:
    src: str
    pos: int = 0
    line: int = 1
    col: int = 1
    out: list[_Tok] = field(default_factory=list)

    def error(self, msg: str) -> GrammarParseError:
        return GrammarParseError(msg, line=self.line, column=self.col)

    def advance(self, n: int = 1) -> str:
        chunk = self.src[self.pos : self.pos + n]
        for ch in chunk:
            if ch == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.pos += n
        return chunk

    def peek(self, k: int = 0) -> str:
        i = self.pos + k
        return self.src[i] if i < len(self.src) else ""

    def run(self) -> list[_Tok]:
        while self.pos < len(self.src):
            ch = self.peek()
            line, col = self.line, self.col
            if ch.isspace():
                self.advance()
            elif ch == "/" and self.peek(1) == "/":
                while self.pos < len(self.src) and self.peek() != "\n":
                    self.advance()
            elif ch == "/" and self.peek(1) == "*":
                end = self.src.find("*/", self.pos + 2)
                if end < 0:
                    raise self.error("unterminated comment")
                self.advance(end + 2 - self.pos)
            elif ch == "'":
                self.out.append(_Tok("STRING", self._quoted("'", "'"), line, col))
            elif ch == "[":
                self.out.append(_Tok("SET", self._quoted("[", "]"), line, col))
            elif ch == "{":
                self.out.append(_Tok("ACTION", self._action(), line, col))
            elif ch == "-" and self.peek(1) == ">":
                self.advance(2)
                self.out.append(_Tok("ARROW", "->", line, col))
            elif ch == "." and self.peek(1) == ".":
                self.advance(2)
                self.out.append(_Tok("RANGE", "..", line, col))
            elif ch == ".":
                self.advance()
                self.out.append(_Tok("DOT", ".", line, col))
            elif ch.isalpha() or ch == "_":
                start = self.pos
                while self.peek() and (self.peek().isalnum() or self.peek() == "_"):
                    self.advance()
                self.out.append(_Tok("ID", self.src[start : self.pos], line, col))
            elif ch.isdigit():
                start = self.pos
                while self.peek().isdigit():
                    self.advance()
                self.out.append(_Tok("INT", self.src[start : self.pos], line, col))
            elif ch in _PUNCT:
                self.advance()
                self.out.append(_Tok(_PUNCT[ch], ch, line, col))
            else:
                raise self.error(f"unexpected character {ch!r}")
        self.out.append(_Tok("EOF", "", self.line, self.col))
        return self.out

    def _quoted(self, opening: str, closing: str) -> str:
        """Return the raw body between delimiters, escapes left in place."""
        self.advance()  # opening
        start = self.pos
        while True:
            ch = self.peek()
            if ch == "":
                raise self.error(f"unterminated {opening}…{closing}")
            if ch == "\\":
                self.advance(2)
                continue
            if ch == closing:
                body = self.src[start : self.pos]
                self.advance()
                return body
            if ch == "\n" and opening == "'":
                raise self.error("newline in string literal")
            self.advance()

    def _action(self) -> str:
        depth = 0
        start = self.pos
        while True:
            ch = self.peek()
            if ch == "":
                raise self.error("unterminated action block")
            if ch in "\"'":
                quote = ch
                self.advance()
                while self.peek() not in (quote, ""):
                    self.advance(2 if self.peek() == "\\" else 1)
                self.advance()
                continue
            self.advance()
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return self.src[start : self.pos]


# ============================================================================
# Escapes
# ============================================================================

_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f"}


def _decode_escapes(raw: str, tok: _Tok, *, in_set: bool) -> list[int | str]:
    """
    Decode an ANTLR literal/set body into code points.

    In sets an unescaped ``-`` is returned as the marker string "-" so ranges can be
    told apart from an escaped hyphen.
    """
    out: list[int | str] = []
    i = 0
    while i < len(raw):
        ch = raw[i]
        if ch != "\\":
            out.append("-" if in_set and ch == "-" else ord(ch))
            i += 1
            continue
        if i + 1 >= len(raw):
            raise GrammarParseError("dangling escape", line=tok.line, column=tok.column)
        esc = raw[i + 1]
        if esc in _SIMPLE_ESCAPES:
            out.append(ord(_SIMPLE_ESCAPES[esc]))
            i += 2
        elif esc == "u":
            if raw[i + 2 : i + 3] == "{":
                end = raw.find("}", i + 3)
                digits = raw[i + 3 : end] if end > 0 else ""
                i = end + 1
            else:
                digits = raw[i + 2 : i + 6]
                i += 6
            try:
                cp = int(digits, 16)
            except ValueError:
                raise GrammarParseError(
                    f"bad unicode escape \\u{digits}", line=tok.line, column=tok.column
                ) from None
            if cp > MAX_CODE_POINT:
                raise GrammarParseError(
                    f"unicode escape \\u{{{digits}}} is beyond U+10FFFF", line=tok.line, column=tok.column
                )
            out.append(cp)
        elif esc in "pP":
            raise GrammarParseError(
                "unicode property escapes are not supported", line=tok.line, column=tok.column
            )
        else:
            out.append(ord(esc))
            i += 2
    return out


def _literal_codes(tok: _Tok) -> list[int]:
    return [c for c in _decode_escapes(tok.text, tok, in_set=False) if isinstance(c, int)]


def _set_from_body(tok: _Tok) -> CharSet:
    items = _decode_escapes(tok.text, tok, in_set=True)
    ranges: list[tuple[int, int]] = []
    i = 0
    while i < len(items):
        cur = items[i]
        if cur == "-":
            ranges.append((ord("-"), ord("-")))
            i += 1
            continue
        assert isinstance(cur, int)
        if i + 2 < len(items) and items[i + 1] == "-" and isinstance(items[i + 2], int):
            hi = items[i + 2]
            assert isinstance(hi, int)
            if hi < cur:
                raise GrammarParseError(
                    f"empty range in set [{tok.text}]", line=tok.line, column=tok.column
                )
            ranges.append((cur, hi))
            i += 3
        else:
            ranges.append((cur, cur))
            i += 1
    if not ranges:
        raise GrammarParseError("empty character set []", line=tok.line, column=tok.column)
    return CharSet.of_ranges(ranges)


# ============================================================================
# Parser
# ============================================================================

_SKIPPED_BLOCKS = {"options", "tokens", "channels"}


def _literal_of(node: Node) -> tuple[int, ...]:
    """Code points of a rule body that is a plain literal, else ()."""
    items = node.items if isinstance(node, Seq) else (node,)
    codes: list[int] = []
    for x in items:
        cp = x.charset.single() if isinstance(x, Chars) else None
        if cp is None:
            return ()
        codes.append(cp)
    return tuple(codes)


class _Parser:
    def __init__(self, toks: list[_Tok]) -> None:
        self.toks = toks
        self.i = 0
        self.mode = DEFAULT_MODE
        self.modes: list[str] = [DEFAULT_MODE]
        self.rules: list[LexerRule] = []
        self.implicit: list[str] = []  # literal bodies from parser rules, in order

    # -- token helpers ------------------------------------------------------

    @property
    def cur(self) -> _Tok:
        return self.toks[self.i]

    def at(self, kind: str, text: str | None = None) -> bool:
        t = self.cur
        return t.kind == kind and (text is None or t.text == text)

    def take(self) -> _Tok:
        t = self.toks[self.i]
        if t.kind != "EOF":
            self.i += 1
        return t

    def expect(self, kind: str, what: str | None = None) -> _Tok:
        if not self.at(kind):
            t = self.cur
            found = t.text or t.kind
            raise GrammarParseError(
                f"expected {what or kind}, found {found!r}", line=t.line, column=t.column
            )
        return self.take()

    def error(self, msg: str, tok: _Tok | None = None) -> GrammarParseError:
        t = tok or self.cur
        return GrammarParseError(msg, line=t.line, column=t.column)

    # -- top level ----------------------------------------------------------

    def grammar(self) -> LexerGrammar:
        combined = True
        if self.at("ID", "lexer"):
            self.take()
            combined = False
        elif self.at("ID", "parser"):
            raise self.error("parser grammars contain no lexer rules")
        if not self.at("ID", "grammar"):
            raise self.error("grammar must start with 'lexer grammar NAME;' or 'grammar NAME;'")
        self.take()
        name = self.expect("ID", "grammar name").text
        self.expect("SEMI", "';'")

        while not self.at("EOF"):
            t = self.cur
            if t.kind == "ID" and t.text in _SKIPPED_BLOCKS and self.toks[self.i + 1].kind == "ACTION":
                self.i += 2
            elif t.kind == "AT":
                while not self.at("ACTION"):
                    if self.at("EOF"):
                        raise self.error("unterminated named action")
                    self.take()
                self.take()
            elif t.kind == "ID" and t.text == "import":
                self._skip_to_semi()
            elif t.kind == "ID" and t.text == "mode":
                self.take()
                if combined:
                    raise self.error("lexer modes are only allowed in lexer grammars", t)
                self.mode = self.expect("ID", "mode name").text
                if self.mode not in self.modes:
                    self.modes.append(self.mode)
                self.expect("SEMI", "';'")
            elif t.kind == "ID" and t.text == "fragment":
                self.take()
                self._lexer_rule(fragment=True)
            elif t.kind == "ID" and t.text[0].isupper():
                self._lexer_rule(fragment=False)
            elif t.kind == "ID":
                self._parser_rule(combined)
            else:
                raise self.error(f"unexpected {t.text or t.kind!r} at top level")

        return LexerGrammar(
            name=name,
            combined=combined,
            rules=tuple(self._implicit_rules() + self.rules),
            modes=tuple(self.modes),
        )

    def _skip_to_semi(self) -> None:
        while not self.at("SEMI"):
            if self.at("EOF"):
                raise self.error("missing ';'")
            self.take()
        self.take()

    def _parser_rule(self, combined: bool) -> None:
        t = self.take()
        if not combined:
            raise self.error(f"parser rule {t.text!r} in a lexer grammar", t)
        while not self.at("SEMI"):
            if self.at("EOF"):
                raise self.error(f"missing ';' after parser rule {t.text!r}")
            s = self.take()
            if s.kind == "STRING" and s.text not in self.implicit:
                self.implicit.append(s.text)
        self.take()

    def _implicit_rules(self) -> list[LexerRule]:
        # literals already defined verbatim by a lexer rule reuse that rule
        defined = set()
        for r in self.rules:
            lit = _literal_of(r.body)
            if not r.fragment and lit:
                defined.add(lit)
        out: list[LexerRule] = []
        for raw in self.implicit:
            tok = _Tok("STRING", raw, 0, 0)
            codes = _literal_codes(tok)
            if not codes or tuple(codes) in defined:
                continue
            body = Seq(tuple(Chars(CharSet.of_char(c)) for c in codes))
            out.append(LexerRule(name=f"T__{len(out)}", body=body))
        return out

    def _lexer_rule(self, fragment: bool) -> None:
        name_tok = self.expect("ID", "rule name")
        if not name_tok.text[0].isupper():
            raise self.error(f"lexer rule names must start upper-case: {name_tok.text!r}", name_tok)
        self.expect("COLON", "':'")
        body = self._alts()
        commands: list[LexerCommand] = []
        if self.at("ARROW"):
            self.take()
            commands.append(self._command())
            while self.at("COMMA"):
                self.take()
                commands.append(self._command())
        self.expect("SEMI", "';'")
        self.rules.append(
            LexerRule(
                name=name_tok.text,
                body=body,
                fragment=fragment,
                commands=tuple(commands),
                mode=self.mode,
                line=name_tok.line,
            )
        )

    def _command(self) -> LexerCommand:
        name = self.expect("ID", "lexer command").text
        arg = None
        if self.at("LPAREN"):
            self.take()
            if self.at("ID") or self.at("INT"):
                arg = self.take().text
            else:
                raise self.error("expected lexer command argument")
            self.expect("RPAREN", "')'")
        return LexerCommand(name, arg)

    # -- rule bodies --------------------------------------------------------

    def _alts(self) -> Node:
        items = [self._seq()]
        while self.at("OR"):
            self.take()
            items.append(self._seq())
        return items[0] if len(items) == 1 else Alt(tuple(items))

    def _seq(self) -> Node:
        items: list[Node] = []
        while not (
            self.at("OR") or self.at("RPAREN") or self.at("SEMI") or self.at("ARROW") or self.at("EOF")
        ):
            if self.at("ACTION"):
                self.take()
                if self.at("QUESTION"):  # semantic predicate
                    self.take()
                continue
            items.append(self._suffixed())
        # an empty alternative is Seq(()), which matches the empty string
        return items[0] if len(items) == 1 else Seq(tuple(items))

    def _suffixed(self) -> Node:
        node = self._atom()
        while self.at("STAR") or self.at("PLUS") or self.at("QUESTION"):
            op = self.take().kind
            if self.at("QUESTION"):  # non-greedy marker
                self.take()
            if op == "STAR":
                node = Repeat(node, 0, None)
            elif op == "PLUS":
                node = Repeat(node, 1, None)
            else:
                node = Repeat(node, 0, 1)
        return node

    def _atom(self) -> Node:
        t = self.cur
        if t.kind == "STRING":
            self.take()
            codes = _literal_codes(t)
            if self.at("RANGE"):
                self.take()
                hi_tok = self.expect("STRING", "range end literal")
                return Chars(self._range(t, codes, hi_tok))
            if not codes:
                raise self.error("empty string literal", t)
            if len(codes) == 1:
                return Chars(CharSet.of_char(codes[0]))
            return Seq(tuple(Chars(CharSet.of_char(c)) for c in codes))
        if t.kind == "SET":
            self.take()
            return Chars(_set_from_body(t))
        if t.kind == "DOT":
            self.take()
            return Chars(CharSet.full())
        if t.kind == "NOT":
            self.take()
            return Not(self._atom(), t.line, t.column)
        if t.kind == "ID":
            self.take()
            if self.at("ASSIGN") or (self.at("PLUS") and self.toks[self.i + 1].kind == "ASSIGN"):
                raise self.error("element labels are not supported in lexer rules")
            return Ref(t.text, t.line, t.column)
        if t.kind == "LPAREN":
            self.take()
            node = self._alts()
            self.expect("RPAREN", "')'")
            return node
        raise self.error(f"unexpected {t.text or t.kind!r} in rule body")

    def _range(self, lo_tok: _Tok, lo_codes: list[int], hi_tok: _Tok) -> CharSet:
        hi_codes = _literal_codes(hi_tok)
        if len(lo_codes) != 1 or len(hi_codes) != 1:
            raise self.error("range bounds must be single characters", lo_tok)
        if hi_codes[0] < lo_codes[0]:
            raise self.error("empty range", lo_tok)
        return CharSet.of_ranges([(lo_codes[0], hi_codes[0])])


def parse_grammar(data: bytes) -> LexerGrammar:
    """
    Parse grammar bytes into a LexerGrammar.

    Args:
        data (bytes): UTF-8 encoded .g4 source (a leading BOM is ignored).

    Returns:
        LexerGrammar: Rules, modes and header metadata.

    Raises:
        GrammarParseError: If the bytes are not UTF-8 or not a supported grammar.

    Examples:
        >>> g = parse_grammar(b"lexer grammar T; ID : [a-z]+ ; WS : ' ' -> skip ;")
        >>> [r.name for r in g.rules]
        ['ID', 'WS']
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise GrammarParseError(f"grammar is not valid UTF-8: {e.reason}") from e
    toks = _Scanner(text).run()
    return _Parser(toks).grammar()
