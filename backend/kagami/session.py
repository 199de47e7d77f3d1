"""Converter session: the job list, current options, queue and downloads."""
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from kagami.batch import ArchiveResult, build_archive, output_filename
from kagami.config import ACCEPTED_INPUT_MIME_TYPES, JOB_TIMEOUT_SECONDS
from kagami.conversion.job_queue import ConversionQueue
from kagami.conversion.models import (
    BatchSummary,
    ConversionJob,
    ConversionOptions,
    JobSnapshot,
    JobStatus,
)
from kagami.conversion.worker import ConversionWorker
from kagami.errors import OutputNotReady

logger = logging.getLogger("kagami.session")


@dataclass(frozen=True)
class SourceFile:
    name: str
    data: bytes
    mime_type: str


def is_accepted(mime_type: str) -> bool:
    return (mime_type or "").strip().lower() in ACCEPTED_INPUT_MIME_TYPES


class ConverterSession:
    """
    Everything a front end needs: admit files, pick options, convert,
    watch progress, download. Not thread-safe; call from one thread.
    """

    def __init__(self, options: Optional[ConversionOptions] = None, worker=None, job_timeout: Optional[float] = None):
        self._options = options or ConversionOptions()
        self._jobs: dict[str, ConversionJob] = {}
        self._worker = worker or ConversionWorker()
        self._job_timeout = JOB_TIMEOUT_SECONDS if job_timeout is None else job_timeout
        self._queue = ConversionQueue(self._worker, self._jobs, lambda: self._options)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def options(self) -> ConversionOptions:
        return self._options

    def set_options(self, options: ConversionOptions) -> None:
        """Applies to jobs dispatched from now on; a running job keeps its options."""
        self._options = options

    @property
    def queue(self) -> ConversionQueue:
        return self._queue

    @property
    def is_converting(self) -> bool:
        return self._queue.is_converting

    def get_job(self, job_id: str) -> Optional[ConversionJob]:
        return self._jobs.get(job_id)

    def add_files(self, files: Iterable[SourceFile]) -> list[str]:
        """Create a Pending job per accepted file. Returns the new job ids."""
        ids = []
        for f in files:
            if not is_accepted(f.mime_type):
                logger.warning("Skipping %s: unsupported type %s", f.name, f.mime_type)
                continue
            job_id = str(uuid.uuid4())
            self._jobs[job_id] = ConversionJob(job_id, f.name, f.data, f.mime_type)
            ids.append(job_id)
        logger.info("Added %s file(s)", len(ids))
        return ids

    def remove(self, job_id: str) -> None:
        self._queue.remove(job_id)
        job = self._jobs.pop(job_id, None)
        if job is not None:
            job.release()

    def clear_all(self) -> None:
        for job_id in list(self._jobs):
            self.remove(job_id)

    def convert_all(self) -> list[str]:
        pending = [job_id for job_id, job in self._jobs.items() if job.status == JobStatus.PENDING]
        return self._queue.enqueue_all(pending)

    def convert_one(self, job_id: str) -> bool:
        """(Re)convert a single job with the current options. False if it is busy or unknown."""
        job = self._jobs.get(job_id)
        if job is None or job.status == JobStatus.PROCESSING:
            return False
        if job_id in self._queue.backlog:
            return True
        job.reset()
        return bool(self._queue.enqueue_all([job_id]))

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Pump worker events until nothing is queued or running."""
        return self._queue.run_until_idle(timeout=timeout, job_timeout=self._job_timeout)

    def poll(self) -> int:
        """Apply every event already waiting, without blocking. Returns the count."""
        count = 0
        while self._queue.process_next_event(timeout=0):
            count += 1
        return count

    def snapshots(self) -> list[JobSnapshot]:
        return [job.snapshot() for job in self._jobs.values()]

    def summary(self) -> BatchSummary:
        jobs = list(self._jobs.values())
        completed = [job for job in jobs if job.status == JobStatus.COMPLETED]
        return BatchSummary(
            total=len(jobs),
            completed=len(completed),
            errored=sum(1 for job in jobs if job.status == JobStatus.ERROR),
            pending=sum(1 for job in jobs if job.status == JobStatus.PENDING),
            processing=sum(1 for job in jobs if job.status == JobStatus.PROCESSING),
            source_bytes=sum(job.source_size for job in completed),
            output_bytes=sum(job.output_size or 0 for job in completed),
        )

    def download(self, job_id: str) -> tuple[bytes, str]:
        job = self._jobs.get(job_id)
        if job is None or not job.has_output:
            raise OutputNotReady(f"No converted output for job {job_id}")
        return job.output_bytes, output_filename(job.filename, job.output_format or self._options.format)

    def download_all(self) -> ArchiveResult:
        return build_archive(self._jobs.values(), self._options.format)

    def close(self) -> None:
        self._worker.shutdown(wait=True)
