"""Source archive transcoding.

Clients upload gzipped tarballs; AWS Lambda wants a zip.  The transform is
streaming: entries are copied one by one and never fully extracted.
"""

from __future__ import annotations

import io
import time
import tarfile
import zipfile
from typing import BinaryIO

from fragments.errors import CodecError

_COPY_CHUNK = 64 * 1024


def tar_to_zip(archive: tarfile.TarFile, output: BinaryIO) -> int:
    """Copy every entry of *archive* into a zip written to *output*.

    Directories become stored entries with a trailing slash; regular files
    are deflated.  Other entry types (links, devices) are skipped.  Returns
    the number of zip entries written.
    """
    written = 0
    with zipfile.ZipFile(output, "w") as zf:
        for member in archive:
            name = member.name.removeprefix("./")
            if not name:
                continue
            mtime = _zip_time(member.mtime)
            if member.isdir():
                info = zipfile.ZipInfo(name.rstrip("/") + "/", date_time=mtime)
                info.compress_type = zipfile.ZIP_STORED
                info.external_attr = ((0o40000 | (member.mode & 0o7777)) << 16) | 0x10
                zf.writestr(info, b"")
                written += 1
                continue
            if not member.isfile():
                continue
            info = zipfile.ZipInfo(name, date_time=mtime)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = (0o100000 | (member.mode & 0o7777)) << 16
            source = archive.extractfile(member)
            if source is None:
                raise CodecError(f"could not read {member.name} from tar")
            with source, zf.open(info, "w") as dest:
                remaining = member.size
                while remaining > 0:
                    chunk = source.read(min(_COPY_CHUNK, remaining))
                    if not chunk:
                        raise CodecError(f"tar entry {member.name} ended early")
                    dest.write(chunk)
                    remaining -= len(chunk)
            written += 1
    return written


def tar_gz_to_zip(source: BinaryIO, output: BinaryIO) -> int:
    """Transcode a gzipped tar stream into a zip written to *output*."""
    try:
        with tarfile.open(fileobj=source, mode="r|gz") as archive:
            return tar_to_zip(archive, output)
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise CodecError("could not re-compress tar to zip") from exc


def tar_gz_to_zip_bytes(source: BinaryIO) -> bytes:
    buffer = io.BytesIO()
    tar_gz_to_zip(source, buffer)
    return buffer.getvalue()


def _zip_time(mtime: float) -> tuple[int, int, int, int, int, int]:
    stamp = time.gmtime(max(int(mtime), 315532800))  # zip cannot go before 1980
    return stamp[:6]
