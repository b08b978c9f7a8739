"""
Exception hierarchy for sysroot-builder.

Every fatal condition of a run derives from SysrootError so the CLI can
report it and exit with a non-zero status in one place.
"""


class SysrootError(Exception):
    """Base class for all sysroot-builder errors."""


class ConfigurationError(SysrootError):
    """Raised when the run configuration is incomplete or malformed."""


# ──────────────────────────────────────────────
# Resolution
# ──────────────────────────────────────────────


class ResolutionError(SysrootError):
    """Base class for dependency resolution failures."""


class PackageNotFoundError(ResolutionError):
    """Raised when an explicitly requested package is absent from the index."""

    def __init__(self, name: str, architecture: str):
        self.name = name
        self.architecture = architecture
        super().__init__(
            f"Dependency '{name}' not found (tried '{name}:{architecture}' and '{name}:all')"
        )


class UnresolvableDependencyError(ResolutionError):
    """Raised when a provider could not make progress on a missing dependency."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Could not find: {name}")


# ──────────────────────────────────────────────
# Transport
# ──────────────────────────────────────────────


class FetchError(SysrootError):
    """Raised when a remote file could not be downloaded."""

    def __init__(self, url: str, status_code: int | None = None, reason: str | None = None):
        self.url = url
        self.status_code = status_code
        detail = reason or (f"HTTP {status_code}" if status_code is not None else "request failed")
        super().__init__(f"Failed to download '{url}': {detail}")


# ──────────────────────────────────────────────
# Installation
# ──────────────────────────────────────────────


class InstallError(SysrootError):
    """Base class for failures while unpacking a package."""


class ChecksumMismatchError(InstallError):
    """Raised when a downloaded archive does not match its index checksum."""

    def __init__(self, name: str, actual: str, expected: str):
        self.name = name
        self.actual = actual
        self.expected = expected
        super().__init__(f"Package '{name}' checksum mismatch: {actual}, expected: {expected}")


class MissingPayloadError(InstallError):
    """Raised when a package archive has no data.tar member."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Package '{name}' could not find: data.tar payload")


class UnsafeArchiveError(InstallError):
    """Raised when a payload member would be written outside the sysroot."""
