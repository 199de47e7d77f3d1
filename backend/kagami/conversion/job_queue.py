"""Backlog of job ids feeding the worker one job at a time."""
import logging
import time
from collections import deque
from typing import Callable, Iterable, Optional

from kagami.conversion.models import ConversionJob, ConversionOptions, JobStatus, QueueState
from kagami.conversion.worker import Complete, Convert, Failed, Progress, Started, WorkerEvent

logger = logging.getLogger("kagami.queue")


class ConversionQueue:
    """
    Owns dispatch order. All methods run on the controlling thread; the
    worker is only reached through post() and get_event().

    Every dispatch gets a new ticket. Events carrying any other ticket are
    stale (a timed-out or superseded dispatch) and are dropped without
    touching job records or advancing the backlog.
    """

    def __init__(
        self,
        worker,
        jobs: dict[str, ConversionJob],
        options_provider: Callable[[], ConversionOptions],
    ):
        self._worker = worker
        self._jobs = jobs
        self._options_provider = options_provider
        self._backlog: deque[str] = deque()
        self._state = QueueState.IDLE
        self._ticket = 0
        self._in_flight: Optional[tuple[str, int]] = None
        self._started_at: Optional[float] = None

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def is_converting(self) -> bool:
        return self._state == QueueState.DRAINING

    @property
    def backlog(self) -> list[str]:
        return list(self._backlog)

    @property
    def in_flight(self) -> Optional[str]:
        return self._in_flight[0] if self._in_flight else None

    def _tracked(self, job_id: str) -> Optional[ConversionJob]:
        return self._jobs.get(job_id)

    def enqueue_all(self, job_ids: Iterable[str]) -> list[str]:
        """Append Pending jobs to the backlog; start draining if idle. Returns ids added."""
        added = []
        for job_id in job_ids:
            job = self._tracked(job_id)
            if job is None or job.status != JobStatus.PENDING:
                continue
            if job_id in self._backlog:
                continue
            self._backlog.append(job_id)
            added.append(job_id)
        if added:
            logger.info("Enqueued %s job(s), backlog=%s", len(added), len(self._backlog))
        if self._state == QueueState.IDLE and self._backlog:
            self._state = QueueState.DRAINING
            self.dequeue_and_dispatch()
        return added

    def dequeue_and_dispatch(self) -> None:
        if self._in_flight is not None:
            return
        while self._backlog:
            job_id = self._backlog.popleft()
            job = self._tracked(job_id)
            if job is None or job.status != JobStatus.PENDING or job.source_bytes is None:
                continue
            options = self._options_provider()
            ticket = self._ticket + 1
            try:
                self._worker.post(Convert(job_id=job_id, ticket=ticket, source_bytes=job.source_bytes, options=options))
            except Exception:
                self._backlog.appendleft(job_id)
                self._state = QueueState.IDLE
                raise
            self._ticket = ticket
            self._in_flight = (job_id, ticket)
            self._started_at = None
            job.mark_processing()
            logger.info("Dispatched job %s (%s) as %s", job_id, job.filename, options.format.value)
            return
        self._state = QueueState.IDLE
        self._started_at = None
        logger.info("Queue idle")

    def remove(self, job_id: str) -> None:
        """Drop a job from the backlog. An in-flight job keeps running; its result is ignored."""
        try:
            self._backlog.remove(job_id)
        except ValueError:
            pass

    def handle_event(self, event: WorkerEvent) -> None:
        if self._in_flight != (event.job_id, event.ticket):
            logger.debug("Ignoring stale event for job %s (ticket %s)", event.job_id, event.ticket)
            return
        job = self._tracked(event.job_id)
        if isinstance(event, Started):
            self._started_at = time.monotonic()
            return
        if isinstance(event, Progress):
            if job is not None and event.percent > job.progress:
                job.progress = event.percent
            return
        if isinstance(event, Complete):
            if job is not None:
                job.mark_completed(event.output_bytes, event.width, event.height, event.format)
                logger.info("Job %s completed: %sx%s, %s bytes", event.job_id, event.width, event.height, job.output_size)
        elif isinstance(event, Failed):
            if job is not None:
                job.mark_failed(event.error_message)
                logger.info("Job %s failed: %s", event.job_id, event.error_message)
        else:
            logger.warning("Unknown worker event %r", event)
            return
        self._in_flight = None
        self.dequeue_and_dispatch()

    def fail_in_flight(self, error_message: str) -> None:
        """Treat the in-flight job as failed; its real result will be dropped as stale."""
        if self._in_flight is None:
            return
        job_id, ticket = self._in_flight
        self.handle_event(Failed(job_id=job_id, ticket=ticket, error_message=error_message))

    def in_flight_seconds(self) -> float:
        """Seconds since the worker started the in-flight job; 0 while it still waits its turn."""
        if self._in_flight is None or self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def process_next_event(self, timeout: Optional[float] = None) -> bool:
        """Apply one worker event if one arrives within timeout. Returns True if applied."""
        event = self._worker.get_event(timeout=timeout)
        if event is None:
            return False
        self.handle_event(event)
        return True

    def run_until_idle(self, timeout: Optional[float] = None, job_timeout: float = 0) -> bool:
        """
        Pump events until the queue is idle. Returns False if timeout expired first.
        job_timeout > 0 fails any job running longer than that many seconds,
        counted from its Started event.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._state == QueueState.DRAINING:
            wait = 0.1
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait = min(wait, remaining)
            self.process_next_event(timeout=wait)
            if job_timeout > 0 and self.in_flight_seconds() > job_timeout:
                logger.warning("Job %s timed out after %ss", self.in_flight, job_timeout)
                self.fail_in_flight(f"Timed out after {job_timeout:g} seconds")
        return True
