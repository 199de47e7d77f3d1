"""Background worker: runs one conversion per message and posts events back."""
import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Union

from kagami.conversion.models import ConversionOptions, ImageFormat
from kagami.conversion.pipeline import convert
from kagami.errors import ConversionError

logger = logging.getLogger("kagami.worker")


@dataclass(frozen=True)
class Convert:
    job_id: str
    ticket: int
    source_bytes: bytes
    options: ConversionOptions


@dataclass(frozen=True)
class Started:
    job_id: str
    ticket: int


@dataclass(frozen=True)
class Progress:
    job_id: str
    ticket: int
    percent: int


@dataclass(frozen=True)
class Complete:
    job_id: str
    ticket: int
    output_bytes: bytes
    width: int
    height: int
    format: ImageFormat


@dataclass(frozen=True)
class Failed:
    job_id: str
    ticket: int
    error_message: str


WorkerEvent = Union[Started, Progress, Complete, Failed]


class ConversionWorker:
    """
    Dedicated single thread that executes Convert messages in arrival order.
    Events go to an outbox queue which the controlling side drains with
    get_event(); nothing is shared with the caller besides the two queues.
    """

    def __init__(self):
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kagami-worker")
        self._outbox: "queue.Queue[WorkerEvent]" = queue.Queue()

    def post(self, message: Convert) -> None:
        self._executor.submit(self._handle, message)

    def get_event(self, timeout: Optional[float] = None) -> Optional[WorkerEvent]:
        """Next event, or None if nothing arrived within timeout."""
        try:
            return self._outbox.get(timeout=timeout)
        except queue.Empty:
            return None

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _emit(self, event: WorkerEvent) -> None:
        self._outbox.put(event)

    def _handle(self, message: Convert) -> None:
        job_id, ticket = message.job_id, message.ticket

        def on_progress(percent: int) -> None:
            self._emit(Progress(job_id=job_id, ticket=ticket, percent=percent))

        self._emit(Started(job_id=job_id, ticket=ticket))
        try:
            result = convert(message.source_bytes, message.options, on_progress=on_progress)
        except ConversionError as e:
            logger.warning("Conversion failed for job %s: %s", job_id, e)
            self._emit(Failed(job_id=job_id, ticket=ticket, error_message=str(e)))
            return
        except Exception as e:
            logger.exception("Unexpected error converting job %s: %s", job_id, e)
            self._emit(Failed(job_id=job_id, ticket=ticket, error_message=str(e) or type(e).__name__))
            return
        self._emit(
            Complete(
                job_id=job_id,
                ticket=ticket,
                output_bytes=result.data,
                width=result.width,
                height=result.height,
                format=result.format,
            )
        )
