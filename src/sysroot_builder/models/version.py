"""
Debian Version Model.

Implements the dpkg ordering of version strings (``verrevcmp``) and the
``[epoch:]upstream[-revision]`` version triple built on top of it.
"""

from dataclasses import dataclass


def _is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def _order(char: str) -> int:
    """Weight of a single character inside a non-digit run.

    The empty string stands for "past the end of the version".
    """
    if not char or _is_digit(char):
        return 0
    if char.isalpha():
        return ord(char)
    if char == "~":
        return -1
    return ord(char) + 256


def compare_versions(a: str | None, b: str | None) -> int:
    """
    Compare two version component strings the way dpkg does.

    Args:
        a: Left-hand version component (None is treated as empty).
        b: Right-hand version component (None is treated as empty).

    Returns:
        A negative number, zero or a positive number when ``a`` sorts
        before, equal to or after ``b``.
    """
    a = a or ""
    b = b or ""
    len_a, len_b = len(a), len(b)
    i = j = 0

    while i < len_a or j < len_b:
        first_diff = 0

        while (i < len_a and not _is_digit(a[i])) or (j < len_b and not _is_digit(b[j])):
            ac = _order(a[i] if i < len_a else "")
            bc = _order(b[j] if j < len_b else "")
            if ac != bc:
                return ac - bc
            i += 1
            j += 1

        while i < len_a and a[i] == "0":
            i += 1
        while j < len_b and b[j] == "0":
            j += 1

        while i < len_a and j < len_b and _is_digit(a[i]) and _is_digit(b[j]):
            if not first_diff:
                first_diff = ord(a[i]) - ord(b[j])
            i += 1
            j += 1

        if i < len_a and _is_digit(a[i]):
            return 1
        if j < len_b and _is_digit(b[j]):
            return -1
        if first_diff:
            return first_diff

    return 0


class VersionComparer:
    """Comparator object over version component strings."""

    def compare(self, a: str | None, b: str | None) -> int:
        return compare_versions(a, b)

    __call__ = compare


@dataclass(frozen=True)
class PackageVersion:
    """
    Parsed ``epoch:upstream-revision`` package version.

    Dataclass equality is structural; use ``compare_to`` (or the ordering
    operators) for dpkg semantics, where e.g. ``1.0`` and ``1.00`` are equal.
    """

    epoch: int = 0
    upstream_version: str = ""
    debian_revision: str = ""

    @classmethod
    def parse(cls, raw: str) -> "PackageVersion":
        """
        Parse a version string.

        The revision starts after the rightmost dash that is not directly
        followed by another dash. Without such a dash the revision is empty.

        Raises:
            ValueError: If the epoch is not a non-negative integer.
        """
        raw = raw.strip()
        epoch = 0
        if ":" in raw:
            epoch_text, raw = raw.split(":", 1)
            if not epoch_text.isdigit():
                raise ValueError(f"Invalid epoch in version: {epoch_text!r}")
            epoch = int(epoch_text)

        for index in range(len(raw) - 1, -1, -1):
            if raw[index] != "-":
                continue
            if index + 1 < len(raw) and raw[index + 1] == "-":
                continue
            return cls(epoch, raw[:index], raw[index + 1 :])

        return cls(epoch, raw, "")

    def compare_to(self, other: "PackageVersion") -> int:
        """Return <0, 0 or >0 when self sorts before, equal to or after other."""
        if self.epoch != other.epoch:
            return 1 if self.epoch > other.epoch else -1

        upstream = compare_versions(self.upstream_version, other.upstream_version)
        if upstream != 0:
            return upstream
        return compare_versions(self.debian_revision, other.debian_revision)

    def __lt__(self, other: "PackageVersion") -> bool:
        return self.compare_to(other) < 0

    def __le__(self, other: "PackageVersion") -> bool:
        return self.compare_to(other) <= 0

    def __gt__(self, other: "PackageVersion") -> bool:
        return self.compare_to(other) > 0

    def __ge__(self, other: "PackageVersion") -> bool:
        return self.compare_to(other) >= 0

    def __str__(self) -> str:
        return f"{self.epoch}:{self.upstream_version}-{self.debian_revision}"
