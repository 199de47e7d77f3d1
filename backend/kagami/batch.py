"""Zip creation for a batch of completed conversions."""
import io
import logging
import re
import zipfile
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from kagami.config import ARCHIVE_PREFIX
from kagami.conversion.models import ConversionJob, ImageFormat
from kagami.errors import NoCompletedJobs

logger = logging.getLogger("kagami.batch")

_EXTENSION_RE = re.compile(r"\.[^/.]+$")


@dataclass(frozen=True)
class ArchiveResult:
    data: bytes
    filename: str
    entries: tuple[str, ...]


def output_filename(original_name: str, fmt) -> str:
    """photo.png + jpeg -> photo.jpg"""
    fmt = ImageFormat.parse(fmt)
    stem = _EXTENSION_RE.sub("", original_name)
    return f"{stem}.{fmt.extension}"


def unique_filename(filename: str, used: set[str]) -> str:
    """Append _1, _2, ... before the extension until the name is not in used."""
    if filename not in used:
        return filename
    stem = _EXTENSION_RE.sub("", filename)
    ext = filename[len(stem):]
    counter = 1
    candidate = f"{stem}_{counter}{ext}"
    while candidate in used:
        counter += 1
        candidate = f"{stem}_{counter}{ext}"
    return candidate


def archive_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"{ARCHIVE_PREFIX}_{today.isoformat()}.zip"


def build_archive(jobs: Iterable[ConversionJob], fmt, today: Optional[date] = None) -> ArchiveResult:
    """
    Zip every completed job's output. Names come from the original filename
    with the output extension; duplicates get _1, _2, ... in iteration order.
    A job's own output format wins over fmt. Raises NoCompletedJobs.
    """
    fmt = ImageFormat.parse(fmt)
    completed = [job for job in jobs if job.has_output]
    if not completed:
        raise NoCompletedJobs("No converted images to download")

    manifest: dict[str, bytes] = {}
    for job in completed:
        name = output_filename(job.filename, job.output_format or fmt)
        name = unique_filename(name, set(manifest))
        manifest[name] = job.output_bytes

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in manifest.items():
            zf.writestr(name, data)
    filename = archive_filename(today)
    logger.info("Created zip %s with %s files", filename, len(manifest))
    return ArchiveResult(data=buf.getvalue(), filename=filename, entries=tuple(manifest))
