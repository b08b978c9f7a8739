"""
Dependency Resolver.

Computes the transitive closure of a package request over a package index:

1. Every requested name is looked up as ``name:<arch>`` and then
   ``name:all`` and walked depth-first through its Depends, skipping
   banned prefixes and collecting names that are not in the index.
2. The collected names are treated as virtual packages and reconciled
   through Provides, round by round, until nothing is missing.

The walk uses an explicit stack with the install set as the visited set,
so cyclic dependency graphs terminate and deep chains do not hit the
recursion limit.
"""

import logging
from collections.abc import Iterable, Mapping

from sysroot_builder.errors import PackageNotFoundError, UnresolvableDependencyError
from sysroot_builder.models.package import Package

logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Resolves requested package names to an ordered install list.

    Args:
        index: Package index keyed by ``name:architecture``. Never modified.
        architecture: Target architecture, e.g. ``amd64``.
        banned: Name prefixes excluded from the dependency walk.
        log: Logger receiving resolution decisions. Defaults to this
            module's logger.
    """

    def __init__(
        self,
        index: Mapping[str, Package],
        architecture: str,
        banned: Iterable[str] = (),
        log: logging.Logger | None = None,
    ):
        self.index = index
        self.architecture = architecture
        self.banned = tuple(banned)
        self.log = log or logger

    def lookup(self, name: str) -> Package | None:
        """Find ``name`` for the target architecture, falling back to ``all``."""
        package = self.index.get(f"{name}:{self.architecture}")
        if package is None:
            package = self.index.get(f"{name}:all")
        return package

    def is_banned(self, name: str) -> bool:
        return any(name.startswith(prefix) for prefix in self.banned)

    def resolve(self, names: Iterable[str], resolve_dependencies: bool = True) -> list[Package]:
        """
        Resolve ``names`` into the list of packages to install.

        Args:
            names: Explicitly requested package names.
            resolve_dependencies: When False only the requested packages
                themselves are returned.

        Returns:
            Packages in first-insertion order of the depth-first walk.

        Raises:
            PackageNotFoundError: A requested name is not in the index.
            UnresolvableDependencyError: A provider for a missing name
                depends on that same missing name.
        """
        install: dict[str, Package] = {}
        missing: dict[str, None] = {}

        for name in names:
            package = self.lookup(name)
            if package is None:
                raise PackageNotFoundError(name, self.architecture)

            if not resolve_dependencies:
                install.setdefault(package.id, package)
                continue

            self._walk(package, install, missing)

        first_round = True
        while missing:
            missing = self._reconcile(missing, install, first_round)
            first_round = False

        return list(install.values())

    # ──────────────────────────────────────────────
    # Graph walk
    # ──────────────────────────────────────────────

    def _walk(
        self, root: Package, install: dict[str, Package], missing: dict[str, None]
    ) -> None:
        """Add ``root`` and everything it depends on to ``install``."""
        if root.id in install:
            return

        install[root.id] = root
        stack = [iter(root.depends)]

        while stack:
            name = next(stack[-1], None)
            if name is None:
                stack.pop()
                continue

            if self.is_banned(name):
                self.log.debug(f"Package dependency '{name}' is banned.")
                continue

            dependency = self.lookup(name)
            if dependency is None:
                missing[name] = None
                continue

            if dependency.id in install:
                continue

            install[dependency.id] = dependency
            stack.append(iter(dependency.depends))

    def _reconcile(
        self, missing: dict[str, None], install: dict[str, Package], first_round: bool
    ) -> dict[str, None]:
        """
        Run one Provides round and return the names still missing.

        Names left over from the requested packages' own walk are dropped
        when nothing provides them. Names introduced by a provider pulled
        in during an earlier round must be satisfiable, otherwise that
        provider could not be installed.
        """
        next_missing: dict[str, None] = {}

        for name in missing:
            provided_by = next((p for p in install.values() if name in p.provides), None)
            if provided_by is not None:
                self.log.info(f"Package '{name}' is provided by '{provided_by.name}'. Skipping.")
                continue

            extra = next((p for p in self.index.values() if name in p.provides), None)
            if extra is None:
                if not first_round:
                    raise UnresolvableDependencyError(name)
                self.log.info(f"No package provides '{name}'. Dropping it.")
                continue

            self.log.info(
                f"Additional package '{extra}' needs to be installed "
                f"because it provides dependency for '{name}'"
            )
            self._walk(extra, install, next_missing)

            if name in next_missing:
                raise UnresolvableDependencyError(name)

        return next_missing


def resolve_packages(
    index: Mapping[str, Package],
    names: Iterable[str],
    architecture: str,
    banned: Iterable[str] = (),
    resolve_dependencies: bool = True,
    log: logging.Logger | None = None,
) -> list[Package]:
    """Functional shortcut for ``DependencyResolver(...).resolve(...)``."""
    resolver = DependencyResolver(index, architecture, banned=banned, log=log)
    return resolver.resolve(names, resolve_dependencies=resolve_dependencies)
