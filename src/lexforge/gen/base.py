"""
Generator abstraction shared by both code-generation strategies.

A Generator turns the verified sources of one manifest entry into artifact bytes.
Both strategies honour the same contract: generate() is a pure function of the
source bytes (and the generator's own configuration, captured by fingerprint()),
so identical inputs yield byte-identical artifacts and stamps stay sound across
machines.

Strategies (selected once per build by BuildSettings.strategy)
- "embedded": lexforge.gen.embedded.EmbeddedGenerator (grammar → serialized DFA)
- "external": lexforge.gen.external.ExternalToolGenerator (subprocess → packed tree)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar

from lexforge.core.schema import DownloadedArtifact, GrammarManifestEntry, filename_from_url


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """
    Inputs for one entry.

    Attributes:
        entry: Manifest entry being generated.
        sources: Verified sources in manifest URL order (paths point into the cache).
        work_dir: The entry's generated/<name>/ directory; scratch space must stay inside it.
    """

    entry: GrammarManifestEntry
    sources: tuple[DownloadedArtifact, ...]
    work_dir: str

    def main_source(self) -> DownloadedArtifact:
        """The source named by entry.main_filename."""
        wanted = self.entry.main_filename
        for src in self.sources:
            if filename_from_url(src.url) == wanted:
                return src
        raise LookupError(f"{wanted} is not among the fetched sources of {self.entry.name}")


class Generator(ABC):
    """
    Abstract base for artifact generators.

    To add a strategy:
    1. Subclass Generator and set ``strategy``.
    2. Implement fingerprint() and generate().
    3. Register it in lexforge.gen.GENERATORS.
    """

    strategy: ClassVar[str]

    @abstractmethod
    def fingerprint(self) -> str:
        """Stable description of the strategy and its configuration, stored in stamps."""

    @abstractmethod
    def generate(self, request: GenerationRequest) -> bytes:
        """
        Produce artifact bytes for one entry.

        Args:
            request: Verified sources plus the entry's working directory.

        Returns:
            bytes: Deterministic artifact content.

        Raises:
            GrammarParseError: Embedded strategy, malformed grammar.
            GeneratorError: External strategy, tool failure.
        """
