"""
Hash-pinned content fetcher with an on-disk cache.

fetch(url, expected_hash, cache_dir) returns verified bytes:
1. The cache filename is the URL's final path segment.
2. If <cache_dir>/<filename> exists and hashes to expected_hash, it is returned
   without any network call.
3. Otherwise the URL is fetched with a single HTTP GET (redirects followed, body
   buffered in memory).
4. The fresh body must hash to expected_hash, else IntegrityError and nothing is
   written.
5. The verified body atomically replaces the cache file.

Notes
- No retries: a failed or mismatching download aborts the build.
- Fetcher owns an httpx.Client unless one is injected (tests pass a client built on
  httpx.MockTransport). httpx.Client is safe to share across worker threads.
- Timeout defaults to None (wait indefinitely), matching a blocking build step.
"""

from __future__ import annotations

import logging
import os
import threading

import httpx

from lexforge.core.errors import ConfigError, IntegrityError, NetworkError
from lexforge.core.hashing import sha256_hex, verify_digest
from lexforge.core.schema import DownloadedArtifact, filename_from_url

from .fs import read_bytes, write_bytes_atomic

logger = logging.getLogger(__name__)

_USER_AGENT = "lexforge"


class Fetcher:
    """
    Cache-aware, hash-verifying HTTP fetcher.

    Attributes:
        network_calls (int): Number of HTTP requests issued so far.

    Examples:
        >>> with Fetcher() as f:  # doctest: +SKIP
        ...     art = f.fetch_artifact(url, sha, "build/downloaded/json", entry="json")
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": _USER_AGENT},
        )
        self.network_calls = 0
        self._lock = threading.Lock()

    def __enter__(self) -> Fetcher:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch_artifact(
        self,
        url: str,
        expected_hash: str,
        cache_dir: str,
        *,
        entry: str | None = None,
    ) -> DownloadedArtifact:
        """
        Return verified bytes for url, from cache when possible.

        Args:
            url (str): Source URL.
            expected_hash (str): Pinned SHA-256 hex digest.
            cache_dir (str): Directory holding the cached file.
            entry (str | None): Manifest entry name, for error context.

        Returns:
            DownloadedArtifact: Bytes plus origin, digest and cache path.

        Raises:
            ConfigError: If no filename can be derived from url.
            NetworkError: On transport failure or a non-2xx response.
            IntegrityError: If the downloaded bytes do not match expected_hash.
            IoError: If the verified bytes cannot be persisted.
        """
        expected = expected_hash.strip().lower()
        try:
            filename = filename_from_url(url)
        except ValueError as e:
            raise ConfigError(str(e), entry=entry, url=url) from e
        path = os.path.join(cache_dir, filename)

        cached = read_bytes(path)
        if cached is not None:
            if verify_digest(cached, expected):
                logger.debug("cache hit %s", path)
                return DownloadedArtifact(cached, url, expected, path, from_cache=True)
            logger.info("cached %s is stale (sha256 %s), re-fetching", path, sha256_hex(cached))

        data = self._get(url, entry=entry)
        if not verify_digest(data, expected):
            raise IntegrityError(
                "downloaded file with wrong SHA-256",
                entry=entry,
                url=url,
                expected=expected,
                actual=sha256_hex(data),
            )
        write_bytes_atomic(path, data)
        logger.info("fetched %s (%d bytes)", url, len(data))
        return DownloadedArtifact(data, url, expected, path, from_cache=False)

    def _get(self, url: str, *, entry: str | None) -> bytes:
        with self._lock:
            self.network_calls += 1
        try:
            resp = self._client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise NetworkError(f"request failed: {e}", entry=entry, url=url) from e
        if not resp.is_success:
            raise NetworkError(
                f"server answered {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
                entry=entry,
                url=url,
            )
        return resp.content


def fetch(
    url: str,
    expected_hash: str,
    cache_dir: str,
    *,
    client: httpx.Client | None = None,
    entry: str | None = None,
) -> bytes:
    """
    Fetch url into cache_dir and return its verified bytes.

    Thin functional wrapper around Fetcher.fetch_artifact (see module docstring for
    the cache contract).
    """
    with Fetcher(client) as f:
        return f.fetch_artifact(url, expected_hash, cache_dir, entry=entry).data
