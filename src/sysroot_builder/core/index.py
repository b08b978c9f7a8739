"""
Package index assembly.

Merges the packages read from every (source, component) index into one
mapping keyed by ``name:architecture``.
"""

import logging
from collections.abc import Iterable

from sysroot_builder.models.package import Package

logger = logging.getLogger(__name__)


def build_index(
    package_groups: Iterable[Iterable[Package]],
    log: logging.Logger | None = None,
) -> dict[str, Package]:
    """
    Merge package groups into a single index.

    Groups must be given in configuration order. The first package seen
    for an id is kept; later duplicates are logged and dropped.
    """
    log = log or logger
    index: dict[str, Package] = {}

    for group in package_groups:
        for package in group:
            if package.id in index:
                log.warning(f"Package '{package.id}' already exists in database. Skipping.")
                continue
            index[package.id] = package

    log.debug(f"Package index contains {len(index)} packages")
    return index
