"""
APT Packages Index Parser.

Turns one decompressed ``Packages`` document (deb822 stanzas separated by
blank lines) into Package records in a single forward-only pass.

Folded continuation lines are not supported, and a final stanza that is
not followed by a blank line is not emitted.
"""

import gzip
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from sysroot_builder.models.package import Package

logger = logging.getLogger(__name__)

RECOGNIZED_FIELDS = frozenset(
    ["Package", "Architecture", "Version", "Filename", "MD5sum", "Depends", "Provides"]
)


def iter_packages(
    lines: Iterable[str], base_uri: str, architecture: str = "all"
) -> Iterator[Package]:
    """
    Yield packages from the lines of a Packages document.

    Args:
        lines: Text lines, with or without trailing newlines.
        base_uri: Repository root that ``Filename`` values are relative to.
        architecture: Architecture used for stanzas without one.

    Yields:
        One Package per stanza that named a package and was closed by a
        blank line.
    """
    base_uri = base_uri.rstrip("/")
    pending: dict[str, str] = {}

    for raw_line in lines:
        line = raw_line.rstrip("\r\n")

        if not line:
            if pending.get("Package"):
                try:
                    package = Package.from_fields(
                        name=pending["Package"],
                        architecture=pending.get("Architecture") or architecture,
                        version=pending.get("Version", ""),
                        uri=f"{base_uri}/{pending.get('Filename', '')}",
                        md5sum=pending.get("MD5sum", ""),
                        depends=pending.get("Depends", ""),
                        provides=pending.get("Provides", ""),
                    )
                except ValueError as e:
                    logger.warning(f"Skipping malformed package '{pending['Package']}': {e}")
                    package = None
                pending = {}
                if package is not None:
                    yield package
            continue

        field_name, separator, value = line.partition(":")
        if not separator:
            continue
        if field_name in RECOGNIZED_FIELDS:
            pending[field_name] = value.strip()


def read_packages_file(
    path: Path, base_uri: str, architecture: str = "all"
) -> Iterator[Package]:
    """Parse a Packages file from disk, gunzipping it when it ends in ``.gz``."""
    if path.suffix == ".gz":
        stream = gzip.open(path, "rt", encoding="utf-8", errors="replace")
    else:
        stream = open(path, encoding="utf-8", errors="replace")

    with stream:
        yield from iter_packages(stream, base_uri, architecture)
