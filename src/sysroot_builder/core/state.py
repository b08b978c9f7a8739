"""
Install state recording.

After a successful build the list of unpacked packages can be stored next
to the sysroot, so CI jobs can tell which package versions a cached sysroot
was built from.
"""

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

from sysroot_builder.models.package import Package

STATE_FILENAME = ".sysroot-state.json"


@dataclass
class InstalledPackage:
    """One unpacked package."""

    name: str
    architecture: str
    version: str
    md5sum: str
    uri: str


@dataclass
class InstallState:
    """Packages unpacked into a sysroot, in install order."""

    architecture: str
    distribution: str
    created: float
    packages: list[InstalledPackage] = field(default_factory=list)

    @staticmethod
    def create(architecture: str, distribution: str, packages: list[Package]) -> "InstallState":
        return InstallState(
            architecture=architecture,
            distribution=distribution,
            created=time.time(),
            packages=[
                InstalledPackage(
                    name=p.name,
                    architecture=p.architecture,
                    version=str(p.version),
                    md5sum=p.md5sum,
                    uri=p.uri,
                )
                for p in packages
            ],
        )

    def to_dict(self) -> dict:
        return asdict(self)

    def save(self, root: Path) -> Path:
        """Write the state file into ``root`` and return its path."""
        path = root / STATE_FILENAME
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        return path

    @classmethod
    def load(cls, root: Path) -> "InstallState | None":
        """Read the state file from ``root``; None when there is none."""
        path = root / STATE_FILENAME
        if not path.exists():
            return None

        with open(path) as f:
            data = json.load(f)
        data["packages"] = [InstalledPackage(**p) for p in data.get("packages", [])]
        return cls(**data)
