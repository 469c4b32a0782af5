"""
Embedded-compiler strategy: grammar bytes → serialized DFA.

The entry's main source is parsed (lexforge.core.lexgrammar), compiled
(lexforge.core.automaton) and serialized with Automaton.as_bytes(). The whole path
is in-process and pure.
"""

from __future__ import annotations

import logging

from lexforge.core.automaton import compile_grammar
from lexforge.core.constants import AUTOMATON_FORMAT_VERSION
from lexforge.core.errors import GrammarParseError
from lexforge.core.lexgrammar import parse_grammar

from .base import GenerationRequest, Generator

logger = logging.getLogger(__name__)


def compile_bytes(data: bytes) -> bytes:
    """Parse, compile and serialize one grammar."""
    return compile_grammar(parse_grammar(data)).as_bytes()


class EmbeddedGenerator(Generator):
    """Compile the entry's main grammar file into an automaton artifact."""

    strategy = "embedded"

    def fingerprint(self) -> str:
        return f"embedded:lxdfa-v{AUTOMATON_FORMAT_VERSION}"

    def generate(self, request: GenerationRequest) -> bytes:
        src = request.main_source()
        try:
            out = compile_bytes(src.data)
        except GrammarParseError as e:
            # e.message already ends with the line/column suffix
            err = GrammarParseError(e.message, entry=request.entry.name, url=src.url)
            err.line, err.column = e.line, e.column
            raise err from e
        logger.info("compiled %s (%d bytes of automaton)", request.entry.name, len(out))
        return out
