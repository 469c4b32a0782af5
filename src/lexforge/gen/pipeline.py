"""
Build pipeline: manifest → fetch → generate → dispatch table.

Flow
1. Load and validate the manifest (ConfigError before any network/filesystem work).
2. External strategy only: fetch the pinned generator tool into downloaded/.tool/.
3. Run every entry as an independent task on a bounded thread pool:
   fetch each source through the cache, reuse a stamped artifact if it is verifiably
   current, otherwise generate and persist atomically.
4. Join, build the dispatch table from all (extension, artifact) pairs, emit it.

Concurrency
- Entries only touch downloaded/<name>/ and generated/<name>/, so tasks share no paths.
- On the first failure pending tasks are cancelled, running ones are awaited, and that
  first error is raised; no partial dispatch table is written.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass

import httpx

from lexforge.core.errors import ConfigError
from lexforge.core.schema import DownloadedArtifact, GeneratedArtifact, GrammarManifestEntry
from lexforge.io.artifacts import load_valid_artifact, persist_artifact
from lexforge.io.config import BuildSettings
from lexforge.io.fetch import Fetcher
from lexforge.io.manifest import load_manifest
from lexforge.io.paths import (
    artifact_path,
    dispatch_index_path,
    dispatch_module_path,
    download_dir,
    generated_dir,
    tool_dir,
)

from .base import GenerationRequest, Generator
from .dispatch import DispatchTable, build_dispatch_table, emit_dispatch, pairs_from_artifacts
from .embedded import EmbeddedGenerator
from .external import ExternalToolGenerator

logger = logging.getLogger(__name__)

GENERATORS: dict[str, type[Generator]] = {
    "embedded": EmbeddedGenerator,
    "external": ExternalToolGenerator,
}


@dataclass(frozen=True)
class BuildResult:
    """
    Outcome of a successful build.

    Attributes:
        artifacts: Generated (or reused) artifacts, sorted by entry name.
        table: The emitted dispatch table.
        module_path: Path of the generated dispatch module.
        index_path: Path of the JSON dispatch index.
        network_calls: HTTP requests issued during the build.
    """

    artifacts: tuple[GeneratedArtifact, ...]
    table: DispatchTable
    module_path: str
    index_path: str
    network_calls: int = 0


def make_generator(settings: BuildSettings, tool: DownloadedArtifact | None = None) -> Generator:
    """
    Instantiate the generator selected by settings.strategy.

    Args:
        settings: Build settings.
        tool: Fetched generator tool (external strategy with a tool_url).
    """
    cls = GENERATORS[settings.strategy]
    if cls is ExternalToolGenerator:
        return ExternalToolGenerator(
            settings.tool_command,
            language=settings.target_language,
            tool_path=tool.path if tool else None,
            tool_sha256=tool.sha256 if tool else None,
        )
    return cls()


def fetch_tool(settings: BuildSettings, fetcher: Fetcher) -> DownloadedArtifact | None:
    """Fetch the pinned external generator tool, if this build needs one."""
    if settings.strategy != "external" or settings.tool_url is None:
        return None
    if settings.tool_sha256 is None:
        raise ConfigError("tool_url is set without tool_sha256", url=settings.tool_url)
    return fetcher.fetch_artifact(
        settings.tool_url, settings.tool_sha256, tool_dir(settings), entry="<tool>"
    )


def build_entry(
    entry: GrammarManifestEntry,
    settings: BuildSettings,
    fetcher: Fetcher,
    generator: Generator,
) -> GeneratedArtifact:
    """
    Fetch, verify and generate a single manifest entry.

    Returns:
        GeneratedArtifact: Fresh or reused artifact for the entry.

    Raises:
        BuildError: Any fetch, integrity, generation or IO failure for this entry.
    """
    cache = download_dir(settings, entry.name)
    sources = tuple(
        fetcher.fetch_artifact(url, sha, cache, entry=entry.name) for url, sha in entry.sources()
    )
    path = artifact_path(settings, entry.name)
    meta = {
        "name": entry.name,
        "strategy": generator.strategy,
        "fingerprint": generator.fingerprint(),
        "sources": sources,
        "extensions": entry.extensions,
    }
    existing = load_valid_artifact(path, **meta)
    if existing is not None:
        logger.info("%s is up to date (%s)", entry.name, existing.sha256[:12])
        return existing
    data = generator.generate(GenerationRequest(entry, sources, generated_dir(settings, entry.name)))
    return persist_artifact(path, data, **meta)


def run_entries(
    entries: Mapping[str, GrammarManifestEntry],
    settings: BuildSettings,
    fetcher: Fetcher,
    generator: Generator,
) -> list[GeneratedArtifact]:
    """
    Build every entry on a bounded worker pool and join them.

    Returns:
        list[GeneratedArtifact]: Sorted by entry name.
    """
    if not entries:
        return []
    workers = min(settings.workers, len(entries))
    results: list[GeneratedArtifact] = []
    if workers == 1:
        for entry in entries.values():
            results.append(build_entry(entry, settings, fetcher, generator))
    else:
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lexforge")
        try:
            futures: list[Future[GeneratedArtifact]] = [
                pool.submit(build_entry, entry, settings, fetcher, generator)
                for entry in entries.values()
            ]
            for fut in as_completed(futures):
                results.append(fut.result())
        except BaseException:
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
    return sorted(results, key=lambda a: a.name)


def build(
    settings: BuildSettings,
    entries: Mapping[str, GrammarManifestEntry] | None = None,
    *,
    client: httpx.Client | None = None,
) -> BuildResult:
    """
    Run the whole pipeline.

    Args:
        settings: Build settings (output root, strategy, workers, tool).
        entries: Pre-loaded manifest entries; loaded from settings.manifest when None.
        client: Optional httpx.Client (tests inject one backed by httpx.MockTransport).

    Returns:
        BuildResult: Artifacts, dispatch table and output paths.

    Raises:
        BuildError: The first failure; the build is aborted as a whole.
    """
    if entries is None:
        entries = load_manifest(settings.manifest)
    logger.info("building %d grammar(s) with the %s generator", len(entries), settings.strategy)

    with Fetcher(client, timeout=settings.timeout) as fetcher:
        tool = fetch_tool(settings, fetcher)
        generator = make_generator(settings, tool)
        artifacts = run_entries(entries, settings, fetcher, generator)
        calls = fetcher.network_calls

    table = build_dispatch_table(pairs_from_artifacts(artifacts))
    module_path = dispatch_module_path(settings)
    index_path = dispatch_index_path(settings)
    emit_dispatch(table, module_path, index_path)
    return BuildResult(tuple(artifacts), table, module_path, index_path, network_calls=calls)
