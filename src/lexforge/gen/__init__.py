"""
lexforge.gen: generator strategies, dispatch table emission, and the build pipeline.

## Public API
- build: run the whole pipeline for a BuildSettings.
- Generator, GenerationRequest: strategy contract.
- EmbeddedGenerator, ExternalToolGenerator: the two strategies.
- GENERATORS: strategy name to Generator class.
- build_dispatch_table, emit_dispatch, DispatchTable: extension lookup.

## Import DAG discipline
- Depends on lexforge.core and lexforge.io; MUST NOT import lexforge.cli.
"""

from __future__ import annotations

from .base import GenerationRequest, Generator
from .dispatch import DispatchEntry, DispatchTable, build_dispatch_table, emit_dispatch
from .embedded import EmbeddedGenerator
from .external import ExternalToolGenerator
from .pipeline import GENERATORS, BuildResult, build, make_generator

__all__ = [
    "GENERATORS",
    "BuildResult",
    "DispatchEntry",
    "DispatchTable",
    "EmbeddedGenerator",
    "ExternalToolGenerator",
    "GenerationRequest",
    "Generator",
    "build",
    "build_dispatch_table",
    "emit_dispatch",
    "make_generator",
]
