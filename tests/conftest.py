"""Shared fixtures: synthetic .deb archives."""

import gzip
import io
import lzma
import tarfile

import pytest
import zstandard

COMPRESSORS = {
    "gz": gzip.compress,
    "xz": lzma.compress,
    "zst": lambda data: zstandard.ZstdCompressor().compress(data),
    "": lambda data: data,
}


def make_tar(files: dict[str, bytes]) -> bytes:
    """Tar archive with one regular file per entry, parent dirs included."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        seen = set()
        for name, content in files.items():
            parts = name.removeprefix("./").split("/")[:-1]
            for depth in range(1, len(parts) + 1):
                directory = "./" + "/".join(parts[:depth])
                if directory in seen:
                    continue
                seen.add(directory)
                info = tarfile.TarInfo(directory)
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)

            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def ar_member(name: str, data: bytes) -> bytes:
    header = (
        f"{name:<16}{0:<12}{0:<6}{0:<6}{'100644':<8}{len(data):<10}".encode("ascii") + b"`\n"
    )
    padding = b"\n" if len(data) % 2 else b""
    return header + data + padding


def make_deb(payload: bytes | None, compression: str = "xz") -> bytes:
    """Build a .deb container; ``payload`` None leaves out the data member."""
    deb = b"!<arch>\n"
    deb += ar_member("debian-binary", b"2.0\n")
    deb += ar_member("control.tar.gz", gzip.compress(make_tar({"./control": b"Package: x\n"})))
    if payload is not None:
        name = f"data.tar.{compression}" if compression else "data.tar"
        deb += ar_member(name, COMPRESSORS[compression](payload))
    return deb


@pytest.fixture
def deb_factory():
    """Return a callable building .deb bytes from a ``{path: content}`` mapping.

    Passing None builds a .deb without a data member.
    """

    def factory(files: dict[str, bytes] | None, compression: str = "xz") -> bytes:
        return make_deb(None if files is None else make_tar(files), compression)

    return factory
