"""
Sysroot Builder - Cross-compilation sysroots from APT repositories.

Resolves a requested package set against Debian/Ubuntu package indexes and
unpacks the resulting packages into a minimal root filesystem.
"""

__version__ = "1.0.0"


def __getattr__(name: str):
    """Lazy import for heavy dependencies."""
    if name == "SysrootBuilder":
        from sysroot_builder.core.builder import SysrootBuilder

        return SysrootBuilder
    if name == "resolve_packages":
        from sysroot_builder.core.resolver import resolve_packages

        return resolve_packages
    if name == "PackageVersion":
        from sysroot_builder.models.version import PackageVersion

        return PackageVersion
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["SysrootBuilder", "resolve_packages", "PackageVersion", "__version__"]
