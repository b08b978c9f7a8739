"""
Sysroot Builder — end-to-end orchestration.

Runs one sysroot build:

1. Purge the sysroot and/or cache when requested
2. Fetch the Packages index of every configured source component
3. Merge the indexes and resolve the requested packages
4. Download, verify and unpack the resolved packages
5. Apply layout fix-ups (bin removal, /usr merge) and record install state
"""

import logging
import time
from pathlib import Path

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from sysroot_builder.core import layout
from sysroot_builder.core.config import SysrootConfig
from sysroot_builder.core.fetcher import Fetcher
from sysroot_builder.core.index import build_index
from sysroot_builder.core.installer import install_package
from sysroot_builder.core.resilience import ExponentialBackoff
from sysroot_builder.core.resolver import DependencyResolver
from sysroot_builder.core.state import InstallState
from sysroot_builder.models.package import Package
from sysroot_builder.parsers.packages_index import read_packages_file

logger = logging.getLogger(__name__)


class SysrootBuilder:
    """
    Builds a sysroot from a validated SysrootConfig.

    Args:
        config: Validated run configuration.
        console: Rich console used for progress and the final summary.
        transport: Optional httpx transport, used to serve a local mirror
            or a mock in tests.
        backoff: Retry policy for downloads.
    """

    def __init__(
        self,
        config: SysrootConfig,
        console: Console | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff: ExponentialBackoff | None = None,
    ):
        self.config = config
        self.console = console or Console()
        self.transport = transport
        self.backoff = backoff or ExponentialBackoff()
        self.stats: dict = {"start_time": 0.0, "indexed": 0, "resolved": 0, "installed": 0, "files": 0}

    @property
    def root(self) -> Path:
        return Path(self.config.path)

    def _fetcher(self) -> Fetcher:
        return Fetcher(
            timeout=self.config.http_timeout, backoff=self.backoff, transport=self.transport
        )

    def _progress(self) -> Progress:
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )

    # ──────────────────────────────────────────────
    # Phases
    # ──────────────────────────────────────────────

    def prepare(self) -> None:
        """Purge what was asked to be purged and create the sysroot directory."""
        if self.config.purge_cache:
            layout.purge(Path(self.config.cache_path))
        if self.config.purge:
            layout.purge(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    async def load_index(self, fetcher: Fetcher) -> dict[str, Package]:
        """Fetch every configured index and merge them in configuration order."""
        with self.console.status("[bold cyan]Fetching package indexes...[/bold cyan]"):
            index_files = await fetcher.fetch_indexes(self.config)

        groups = (
            read_packages_file(f.path, f.source.base_uri, self.config.arch) for f in index_files
        )
        index = build_index(groups)
        self.stats["indexed"] = len(index)
        logger.info(f"Loaded {len(index)} packages from {len(index_files)} indexes")
        return index

    def resolve(self, index: dict[str, Package]) -> list[Package]:
        """Resolve the configured package request against ``index``."""
        resolver = DependencyResolver(
            index, self.config.arch, banned=self.config.effective_banned_packages
        )
        packages = resolver.resolve(
            self.config.packages, resolve_dependencies=not self.config.no_dependencies
        )
        self.stats["resolved"] = len(packages)
        logger.info(f"Resolved {len(packages)} packages to install")
        return packages

    async def install(self, fetcher: Fetcher, packages: list[Package]) -> None:
        """Download all packages, then unpack them in resolution order."""
        work_dir = Path(self.config.cache_path) / "tmp"

        with self._progress() as progress:
            download_task = progress.add_task("[green]Downloading...[/green]", total=len(packages))
            archives = await fetcher.fetch_packages(
                packages,
                self.config.packages_path,
                on_done=lambda _package: progress.advance(download_task),
            )

            install_task = progress.add_task("[green]Installing...[/green]", total=len(packages))
            for number, package in enumerate(packages, start=1):
                logger.info(f"Installing package: {package.name} ({number}/{len(packages)})")
                self.stats["files"] += install_package(
                    package, archives[package.id], self.root, work_dir
                )
                self.stats["installed"] += 1
                progress.advance(install_task)

        layout.purge(work_dir)

    def finalize(self, packages: list[Package]) -> None:
        """Layout fix-ups and the optional install state file."""
        if self.config.no_bins:
            layout.delete_bins(self.root)
        if not self.config.no_usr_merge:
            layout.merge_usr(self.root)
        if self.config.store_install_state:
            state = InstallState.create(self.config.arch, self.config.distribution, packages)
            path = state.save(self.root)
            logger.info(f"Install state written to '{path}'")

    # ──────────────────────────────────────────────
    # Main Run
    # ──────────────────────────────────────────────

    async def resolve_only(self) -> list[Package]:
        """Fetch indexes and resolve without touching the sysroot."""
        self.stats["start_time"] = time.time()
        async with self._fetcher() as fetcher:
            index = await self.load_index(fetcher)
        return self.resolve(index)

    async def run(self) -> list[Package]:
        """Build the sysroot and return the installed packages."""
        self.stats["start_time"] = time.time()
        logger.info(f"Building sysroot on: {self.config.path}")

        self.prepare()
        async with self._fetcher() as fetcher:
            index = await self.load_index(fetcher)
            packages = self.resolve(index)
            await self.install(fetcher, packages)
            download_stats = dict(fetcher.stats)

        self.finalize(packages)
        self._print_final_statistics(download_stats)
        return packages

    def _print_final_statistics(self, download_stats: dict) -> None:
        elapsed = time.time() - self.stats["start_time"]
        mb_downloaded = download_stats["bytes_downloaded"] / (1024 * 1024)

        self.console.print("\n[bold green][DONE] Sysroot ready[/bold green]")
        self.console.print(
            f"Path: {self.config.path} | Packages: {self.stats['installed']}/{self.stats['resolved']} "
            f"| Files: {self.stats['files']}"
        )
        self.console.print(
            f"[cyan]Downloads:[/cyan] {download_stats['successful_requests']} new, "
            f"{download_stats['cached']} cached, {mb_downloaded:.2f} MB | Elapsed: {elapsed:.0f}s"
        )
