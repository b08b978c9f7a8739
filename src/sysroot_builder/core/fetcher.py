"""
Repository fetching.

Downloads Packages indexes and .deb archives over HTTP into the cache
directory. Files already present in the cache are never downloaded again.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

import aiofiles
import httpx

from sysroot_builder.core.config import SysrootConfig
from sysroot_builder.core.resilience import ExponentialBackoff, retry_async
from sysroot_builder.errors import FetchError
from sysroot_builder.models.package import Package, Source

logger = logging.getLogger(__name__)


def source_cache_name(source: Source) -> str:
    """Directory name that keeps cached indexes of different sources apart."""
    parsed = urlparse(source.base_uri)
    return f"{parsed.netloc}{parsed.path}".replace("/", "_").replace(":", "_")


@dataclass(frozen=True)
class IndexFile:
    """A downloaded Packages index of one (source, component) pair."""

    source: Source
    component: str
    path: Path


class Fetcher:
    """
    Async HTTP downloader with a file cache.

    Use as an async context manager so the underlying client is closed::

        async with Fetcher(timeout=100) as fetcher:
            await fetcher.download_if_missing(url, path)
    """

    def __init__(
        self,
        timeout: float = 100.0,
        max_concurrency: int = 8,
        backoff: ExponentialBackoff | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.backoff = backoff or ExponentialBackoff()
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        self.stats: dict = {
            "total_requests": 0,
            "successful_requests": 0,
            "cached": 0,
            "bytes_downloaded": 0,
        }

    async def __aenter__(self) -> "Fetcher":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ──────────────────────────────────────────────
    # HTTP Layer
    # ──────────────────────────────────────────────

    async def _get(self, url: str) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Fetcher must be used as an async context manager")

        self.stats["total_requests"] += 1
        try:
            return await retry_async(
                lambda: self._client.get(url), self.backoff, description=f"GET {url}"
            )
        except httpx.HTTPError as e:
            raise FetchError(url, reason=f"{type(e).__name__}: {e}") from e

    async def download_if_missing(self, url: str, destination: Path) -> Path:
        """
        Download ``url`` to ``destination`` unless it is already cached.

        The body is written to a ``.part`` file first so an interrupted
        download never leaves a truncated file in the cache.

        Raises:
            FetchError: On any non-success HTTP status or transport failure.
        """
        if destination.exists():
            logger.debug(f"File '{destination}' is cached. Not downloading.")
            self.stats["cached"] += 1
            return destination

        async with self._semaphore:
            logger.debug(f"Downloading '{url}' to '{destination}'")
            response = await self._get(url)
            if not response.is_success:
                raise FetchError(url, status_code=response.status_code)

            destination.parent.mkdir(parents=True, exist_ok=True)
            partial = destination.with_name(destination.name + ".part")
            async with aiofiles.open(partial, "wb") as f:
                await f.write(response.content)
            partial.replace(destination)

        self.stats["successful_requests"] += 1
        self.stats["bytes_downloaded"] += len(response.content)
        return destination

    # ──────────────────────────────────────────────
    # Indexes and packages
    # ──────────────────────────────────────────────

    async def fetch_indexes(self, config: SysrootConfig) -> list[IndexFile]:
        """
        Download the Packages index of every configured (source, component).

        Downloads run concurrently; the result keeps configuration order.
        Components missing on the server (HTTP 404) are skipped with a
        warning, any other failure aborts.
        """
        pairs = [(source, component) for source in config.sources for component in source.components]

        async def fetch_one(source: Source, component: str) -> IndexFile | None:
            url = source.index_url(config.distribution, component, config.arch)
            target = (
                config.databases_path
                / source_cache_name(source)
                / f"{config.distribution}-{component}-{config.arch}.gz"
            )
            try:
                await self.download_if_missing(url, target)
            except FetchError as e:
                if e.status_code == 404:
                    logger.warning(
                        f"Source '{source.uri}' does not contain section '{component}' "
                        f"for '{config.arch}'. Skipping."
                    )
                    return None
                raise
            return IndexFile(source=source, component=component, path=target)

        results = await asyncio.gather(*(fetch_one(s, c) for s, c in pairs))
        return [result for result in results if result is not None]

    async def fetch_packages(
        self,
        packages: Sequence[Package],
        directory: Path,
        on_done: Callable[[Package], None] | None = None,
    ) -> dict[str, Path]:
        """
        Download package archives into ``directory``.

        Returns:
            Mapping of package id to the cached archive path.
        """

        async def fetch_one(package: Package) -> tuple[str, Path]:
            path = await self.download_if_missing(package.uri, directory / package.filename)
            if on_done is not None:
                on_done(package)
            return package.id, path

        results = await asyncio.gather(*(fetch_one(p) for p in packages))
        return dict(results)
