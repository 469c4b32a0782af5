from __future__ import annotations

import pytest

from lexforge.core.automaton import Automaton, compile_grammar
from lexforge.core.constants import AUTOMATON_MAGIC
from lexforge.core.errors import GrammarParseError, LexError
from lexforge.core.lexgrammar import parse_grammar


def _compile(src: bytes) -> Automaton:
    return compile_grammar(parse_grammar(src))


def _pairs(dfa: Automaton, text: str, mode: str = "DEFAULT_MODE") -> list[tuple[str, str]]:
    return [(t.type, t.text) for t in dfa.tokenize(text, mode)]


def test_json_tokens(json_g4: bytes) -> None:
    dfa = _compile(json_g4)
    assert _pairs(dfa, '{"a\\"b": [1, -2.5, true, null]}') == [
        ("LBRACE", "{"),
        ("STRING", '"a\\"b"'),
        ("COLON", ":"),
        ("LBRACK", "["),
        ("NUMBER", "1"),
        ("COMMA", ","),
        ("NUMBER", "-2.5"),
        ("COMMA", ","),
        ("TRUE", "true"),
        ("COMMA", ","),
        ("NULL", "null"),
        ("RBRACK", "]"),
        ("RBRACE", "}"),
    ]


def test_longest_match_then_declaration_priority() -> None:
    dfa = _compile(b"lexer grammar K; IF : 'if' ; ID : [a-z]+ ; WS : ' ' -> skip ;")
    assert _pairs(dfa, "if iffy i") == [("IF", "if"), ("ID", "iffy"), ("ID", "i")]


def test_hidden_channel_and_token_offsets(ini_g4: bytes) -> None:
    dfa = _compile(ini_g4)
    toks = list(dfa.tokenize("[core]\nname = x ; note\n"))
    assert [t.type for t in toks if not t.hidden] == [
        "LBRACK", "NAME", "RBRACK", "NL", "NAME", "EQ", "NAME", "NL",
    ]
    hidden = [t for t in toks if t.hidden]
    assert [t.type for t in hidden] == ["WS", "WS", "WS"]
    eq = next(t for t in toks if t.type == "EQ")
    assert eq.start == 12


def test_push_and_pop_modes() -> None:
    dfa = _compile(
        b"""lexer grammar M;
OPEN : '<' -> pushMode(TAG) ;
TEXT : ~[<]+ ;
mode TAG;
NAME : [a-z]+ ;
CLOSE : '>' -> popMode ;
"""
    )
    assert _pairs(dfa, "hi<b>yo") == [
        ("TEXT", "hi"),
        ("OPEN", "<"),
        ("NAME", "b"),
        ("CLOSE", ">"),
        ("TEXT", "yo"),
    ]
    assert _pairs(dfa, "abc", mode="TAG") == [("NAME", "abc")]


def test_more_accumulates_into_next_token() -> None:
    dfa = _compile(
        b"""lexer grammar S;
OPEN : '"' -> more, mode(STR) ;
mode STR;
CLOSE : '"' -> type(STRING), mode(DEFAULT_MODE) ;
CH : ~["] -> more ;
"""
    )
    toks = list(dfa.tokenize('"ab"'))
    assert [(t.type, t.text, t.start) for t in toks] == [("STRING", '"ab"', 0)]
    with pytest.raises(LexError):
        list(dfa.tokenize('"ab'))


def test_lex_error_reports_offset() -> None:
    dfa = _compile(b"lexer grammar N; INT : [0-9]+ ; WS : ' ' -> skip ;")
    with pytest.raises(LexError) as ei:
        list(dfa.tokenize("12 x"))
    assert ei.value.offset == 3
    with pytest.raises(KeyError):
        list(dfa.tokenize("1", mode="NOPE"))


def test_compilation_is_deterministic_and_round_trips(json_g4: bytes) -> None:
    a = _compile(json_g4).as_bytes()
    b = _compile(json_g4).as_bytes()
    assert a == b
    assert a.startswith(AUTOMATON_MAGIC)
    back = Automaton.from_bytes(a)
    assert back.as_bytes() == a
    assert _pairs(back, "[false]") == [("LBRACK", "["), ("FALSE", "false"), ("RBRACK", "]")]


def test_from_bytes_rejects_corrupt_data(json_g4: bytes) -> None:
    data = _compile(json_g4).as_bytes()
    with pytest.raises(ValueError, match="magic"):
        Automaton.from_bytes(b"NOPE" + data)
    with pytest.raises(ValueError, match="version"):
        Automaton.from_bytes(AUTOMATON_MAGIC + b"\x63" + data[len(AUTOMATON_MAGIC) + 1 :])
    with pytest.raises(ValueError, match="truncated"):
        Automaton.from_bytes(data[:-3])
    with pytest.raises(ValueError, match="trailing"):
        Automaton.from_bytes(data + b"\x00")


@pytest.mark.parametrize(
    "src, fragment",
    [
        (b"lexer grammar E; A : B ;", "undefined lexer rule 'B'"),
        (b"lexer grammar E; A : 'a' A? ;", "recursive lexer rule A -> A"),
        (b"lexer grammar E; A : 'a'* ;", "empty string"),
        (b"lexer grammar E; A : 'a' | ;", "empty string"),
        (b"lexer grammar E; A : 'a' -> frobnicate ;", "unsupported lexer command"),
        (b"lexer grammar E; A : 'a' -> mode(NOWHERE) ;", "unknown mode"),
        (b"lexer grammar E; A : ~('ab') ;", "single-character"),
        (b"lexer grammar E; fragment A : 'a' ;", "defines no lexer rules"),
    ],
)
def test_compile_errors(src: bytes, fragment: str) -> None:
    with pytest.raises(GrammarParseError) as ei:
        _compile(src)
    assert fragment in str(ei.value)
