"""
Core package for lexforge contracts (manifest schema, integrity, grammar compiler, errors).

## Contracts (single source of truth)
- Schema: GrammarManifestEntry and the artifact records passed between layers.
- Hashing: SHA-256 integrity policy and canonical JSON for stamps.
- Grammar compiler: lexgrammar (ANTLR lexer subset parser), charset, automaton (DFA).
- Errors: the BuildError taxonomy shared by every layer.
- Constants: layout names and the automaton wire format identifiers.

## Notes
- Zero‑IO policy: stdlib + pydantic only; no file/network IO.
- compile_grammar(parse_grammar(data)).as_bytes() is a pure function of data.

## Downstream usage
- lexforge.io: fetches and verifies sources with `hashing`, persists artifacts.
- lexforge.gen: drives the generators and emits the dispatch table.

## Examples
```python
from lexforge.core.automaton import compile_grammar
from lexforge.core.lexgrammar import parse_grammar

dfa = compile_grammar(parse_grammar(b"lexer grammar T; INT: [0-9]+; WS: [ ]+ -> skip;"))
[t.text for t in dfa.tokenize("1 22")]  # ['1', '22']
```
"""

from .errors import (
    BuildError,
    ConfigError,
    ErrorKind,
    GeneratorError,
    GrammarParseError,
    IntegrityError,
    InvalidExtensionError,
    IoError,
    NetworkError,
)

__all__ = [
    "BuildError",
    "ConfigError",
    "ErrorKind",
    "GeneratorError",
    "GrammarParseError",
    "IntegrityError",
    "InvalidExtensionError",
    "IoError",
    "NetworkError",
]
