"""
Package installer.

Verifies a downloaded .deb against its index checksum and unpacks its
``data.tar[.zst|.xz|.gz|.bz2]`` payload into the sysroot. Maintainer
scripts are never run.
"""

import bz2
import gzip
import hashlib
import io
import logging
import lzma
import shutil
import tarfile
from pathlib import Path
from typing import BinaryIO

import zstandard
from debian.arfile import ArError, ArFile

from sysroot_builder.errors import (
    ChecksumMismatchError,
    InstallError,
    MissingPayloadError,
    UnsafeArchiveError,
)
from sysroot_builder.models.package import Package

logger = logging.getLogger(__name__)

PAYLOAD_PREFIX = "data.tar"


def file_md5(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """Lowercase hex MD5 digest of a file."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify_checksum(package: Package, archive: Path) -> None:
    """Raise ChecksumMismatchError unless ``archive`` matches ``package.md5sum``."""
    actual = file_md5(archive)
    expected = package.md5sum.lower()
    if actual != expected:
        raise ChecksumMismatchError(package.name, actual, expected)


def extract_data_member(package: Package, archive: Path) -> tuple[str, bytes]:
    """
    Read the payload member out of the .deb ar container.

    Returns:
        The member name (e.g. ``data.tar.xz``) and its raw bytes.
    """
    try:
        ar = ArFile(filename=str(archive))
    except (ArError, OSError) as e:
        raise InstallError(f"Package '{package.name}' is not a valid .deb archive: {e}") from e
    members = [m for m in ar.getmembers() if m.name.startswith(PAYLOAD_PREFIX)]

    if not members:
        raise MissingPayloadError(package.name)
    if len(members) > 1:
        names = ", ".join(m.name for m in members)
        raise InstallError(f"Package '{package.name}' has more than one payload: {names}")

    member = members[0]
    try:
        return member.name, member.read()
    except OSError as e:
        raise InstallError(f"Package '{package.name}' has a truncated {member.name}: {e}") from e


def decompress_payload(member_name: str, data: bytes, output: BinaryIO) -> None:
    """Write the plain tar stream of a payload member to ``output``.

    Raises:
        InstallError: If the compression is unknown or the stream is damaged.
    """
    try:
        _decompress(member_name, io.BytesIO(data), output)
    except (OSError, EOFError, lzma.LZMAError, zstandard.ZstdError) as e:
        raise InstallError(f"Damaged payload {member_name}: {e}") from e


def _decompress(member_name: str, source: BinaryIO, output: BinaryIO) -> None:
    if member_name.endswith(".zst"):
        zstandard.ZstdDecompressor().copy_stream(source, output)
        return

    if member_name.endswith(".xz"):
        stream = lzma.open(source)
    elif member_name.endswith(".gz"):
        stream = gzip.open(source)
    elif member_name.endswith(".bz2"):
        stream = bz2.open(source)
    elif member_name == PAYLOAD_PREFIX:
        stream = source
    else:
        raise InstallError(f"Unsupported payload compression: {member_name}")

    with stream:
        shutil.copyfileobj(stream, output)


def _sysroot_filter(member: tarfile.TarInfo, dest_path: str) -> tarfile.TarInfo | None:
    # Device nodes and FIFOs cannot be created without privileges and are
    # useless in a sysroot.
    if member.ischr() or member.isblk() or member.isfifo():
        return None
    return tarfile.tar_filter(member, dest_path)


def unpack_payload(tar_path: Path, root: Path) -> int:
    """
    Extract a tar archive into ``root``.

    Returns:
        Number of members in the archive.

    Raises:
        UnsafeArchiveError: If a member would land outside ``root``.
    """
    try:
        with tarfile.open(tar_path) as tar:
            members = tar.getmembers()
            tar.extractall(root, members=members, filter=_sysroot_filter)
    except tarfile.FilterError as e:
        raise UnsafeArchiveError(f"Refusing to unpack '{tar_path.name}': {e}") from e
    except tarfile.TarError as e:
        raise InstallError(f"Unable to read payload '{tar_path.name}': {e}") from e
    return len(members)


def install_package(package: Package, archive: Path, root: Path, work_dir: Path) -> int:
    """
    Verify and unpack one package into the sysroot.

    Args:
        package: Index record the archive was downloaded for.
        archive: Cached .deb file.
        root: Sysroot directory.
        work_dir: Scratch directory for the decompressed tarball.

    Returns:
        Number of payload members extracted.
    """
    verify_checksum(package, archive)

    member_name, data = extract_data_member(package, archive)
    logger.debug(f"Unpacking {member_name} of '{package.name}'")

    work_dir.mkdir(parents=True, exist_ok=True)
    tar_path = work_dir / "data.tar"
    try:
        with open(tar_path, "wb") as output:
            decompress_payload(member_name, data, output)
        return unpack_payload(tar_path, root)
    finally:
        tar_path.unlink(missing_ok=True)
