"""
Dependency Clause Model.

A dependency clause names a package, the architecture it must be built
for and an optional version restriction. Index ingestion only keeps the
bare names of Depends/Provides entries (see ``parse_relationship_field``);
full clauses are used to test individual candidates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sysroot_builder.models.version import PackageVersion

if TYPE_CHECKING:
    from sysroot_builder.models.package import Package


# name[:arch] [(op version)] [[arch list]] [<profiles>]
_CLAUSE_RE = re.compile(
    r"^\s*(?P<name>[^\s:(\[<]+)"
    r"(?::(?P<arch>[^\s(\[<]+))?"
    r"\s*(?:\(\s*(?P<op><<|<=|>=|>>|=|<|>)\s*(?P<version>[^)\s]+)\s*\))?"
)

# Characters that terminate the package name part of a relationship atom.
_NAME_TERMINATORS = re.compile(r"[\s(\[<]")


class VersionConstraint(Enum):
    """Relation between a candidate version and the required version."""

    NONE = ""
    EQUAL = "="
    GREATER = ">>"
    GREATER_OR_EQUAL = ">="
    LESS = "<<"
    LESS_OR_EQUAL = "<="

    @classmethod
    def from_operator(cls, operator: str | None) -> "VersionConstraint":
        """Map a Debian relation operator to a constraint.

        The obsolete ``<`` and ``>`` operators mean ``<=`` and ``>=``.
        """
        if not operator:
            return cls.NONE
        match operator:
            case ">":
                return cls.GREATER_OR_EQUAL
            case "<":
                return cls.LESS_OR_EQUAL
            case _:
                return cls(operator)


@dataclass(frozen=True)
class PackageDependency:
    """A single dependency clause used to test candidate packages."""

    name: str
    architecture: str
    required_version: PackageVersion | None = None
    constraint: VersionConstraint = VersionConstraint.NONE

    @classmethod
    def parse(cls, clause: str, architecture: str) -> "PackageDependency":
        """
        Build a clause from relationship text such as ``libc6:amd64 (>= 2.36)``.

        Only the first alternative of an ``a | b`` group is used. An
        ``:any``/``:native`` qualifier keeps the given architecture.

        Raises:
            ValueError: If the clause does not start with a package name.
        """
        first = clause.split("|", 1)[0]
        match = _CLAUSE_RE.match(first)
        if not match:
            raise ValueError(f"Invalid dependency clause: {clause!r}")

        arch = match.group("arch")
        if not arch or arch in ("any", "native"):
            arch = architecture

        version = match.group("version")
        return cls(
            name=match.group("name"),
            architecture=arch,
            required_version=PackageVersion.parse(version) if version else None,
            constraint=VersionConstraint.from_operator(match.group("op")),
        )

    def is_satisfied_by(self, candidate: Package) -> bool:
        """Check whether ``candidate`` fulfils this clause."""
        if self.name != candidate.name:
            return False
        if self.architecture != candidate.architecture:
            return False

        if self.constraint is VersionConstraint.NONE:
            return True

        required = self.required_version or PackageVersion()
        result = candidate.version.compare_to(required)

        match self.constraint:
            case VersionConstraint.EQUAL:
                return result == 0
            case VersionConstraint.GREATER:
                return result > 0
            case VersionConstraint.GREATER_OR_EQUAL:
                return result >= 0
            case VersionConstraint.LESS:
                return result < 0
            case VersionConstraint.LESS_OR_EQUAL:
                return result <= 0
            case _:
                raise ValueError(f"Unknown version constraint: {self.constraint!r}")


def parse_relationship_field(value: str | None) -> tuple[str, ...]:
    """
    Reduce a Depends/Provides field value to bare package names.

    ``"libc6 (>= 2.36), libgcc-s1 | libgcc1, python3:any"`` becomes
    ``("libc6", "libgcc-s1", "python3")``: only the first alternative of
    each clause survives, version restrictions and architecture
    qualifiers are dropped.
    """
    if not value:
        return ()

    names = []
    for clause in value.split(","):
        atom = clause.split("|", 1)[0].strip()
        name = _NAME_TERMINATORS.split(atom, 1)[0]
        name = name.split(":", 1)[0]
        if name:
            names.append(name)

    return tuple(names)
