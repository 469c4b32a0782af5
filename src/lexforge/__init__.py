"""
lexforge: reproducible lexer generation from hash-pinned grammars.

A build fetches every grammar declared in a manifest, verifies each download
against its pinned SHA-256, generates one lexer artifact per grammar (embedded
DFA compiler or an external generator tool), and emits a dispatch table mapping
file extensions to artifacts.

## Layers
- lexforge.core: zero-IO contracts: manifest schema, hashing, errors, grammar compiler.
- lexforge.io: settings, fetch + cache, atomic artifact persistence.
- lexforge.gen: generator strategies, dispatch emission, build pipeline.
- lexforge.cli: `lexforge build | hash | lex`.

## Import DAG discipline
core ← io ← gen ← cli (arrows point at dependencies).
"""

__version__ = "0.1.0"
