"""
Binary Package Model.

Defines the package record produced by index ingestion and consumed by the
resolver and installer, plus the APT source description it comes from.
"""

from dataclasses import dataclass, field

from sysroot_builder.models.dependency import parse_relationship_field
from sysroot_builder.models.version import PackageVersion


@dataclass(frozen=True, eq=False)
class Package:
    """
    A binary package available in a package index.

    Two records are the same package when name and MD5 checksum match,
    whichever index produced them. ``id`` (``name:architecture``) is the
    key used inside an index.
    """

    name: str
    architecture: str
    version: PackageVersion = field(default_factory=PackageVersion)
    uri: str = ""
    md5sum: str = ""
    depends: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "depends", tuple(self.depends))
        object.__setattr__(self, "provides", tuple(self.provides))

    @classmethod
    def from_fields(
        cls,
        name: str,
        architecture: str = "all",
        version: str = "",
        uri: str = "",
        md5sum: str = "",
        depends: str = "",
        provides: str = "",
    ) -> "Package":
        """Create a package from raw index field values."""
        return cls(
            name=name,
            architecture=architecture,
            version=PackageVersion.parse(version),
            uri=uri,
            md5sum=md5sum,
            depends=parse_relationship_field(depends),
            provides=parse_relationship_field(provides),
        )

    @property
    def id(self) -> str:
        return f"{self.name}:{self.architecture}"

    @property
    def filename(self) -> str:
        """Last path segment of the download URI."""
        return self.uri.rstrip("/").rsplit("/", 1)[-1]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return self.name == other.name and self.md5sum == other.md5sum

    def __hash__(self) -> int:
        return hash((self.name, self.md5sum))

    def __str__(self) -> str:
        return self.id

    def to_dict(self) -> dict:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "name": self.name,
            "architecture": self.architecture,
            "version": str(self.version),
            "uri": self.uri,
            "md5sum": self.md5sum,
            "depends": list(self.depends),
            "provides": list(self.provides),
        }


@dataclass(frozen=True)
class Source:
    """An APT repository and the components to read from it."""

    uri: str
    components: tuple[str, ...] = ("main",)

    def __post_init__(self):
        object.__setattr__(self, "components", tuple(self.components))

    @property
    def base_uri(self) -> str:
        return self.uri.rstrip("/")

    def index_url(self, distribution: str, component: str, architecture: str) -> str:
        """URL of the gzip-compressed Packages index of one component."""
        return (
            f"{self.base_uri}/dists/{distribution}/{component}/binary-{architecture}/Packages.gz"
        )
