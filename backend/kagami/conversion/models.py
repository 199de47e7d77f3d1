"""Conversion options and job models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from kagami.config import DEFAULT_FORMAT, DEFAULT_QUALITY, FORMAT_EXTENSIONS, FORMAT_MIME_TYPES
from kagami.errors import InvalidOptions


class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def extension(self) -> str:
        return FORMAT_EXTENSIONS[self.value]

    @property
    def mime_type(self) -> str:
        return FORMAT_MIME_TYPES[self.value]

    @property
    def has_alpha(self) -> bool:
        return self is not ImageFormat.JPEG

    @property
    def is_lossy(self) -> bool:
        return self is not ImageFormat.PNG

    @classmethod
    def parse(cls, value) -> "ImageFormat":
        if isinstance(value, cls):
            return value
        name = (value or "").strip().lower()
        if name == "jpg":
            name = "jpeg"
        try:
            return cls(name)
        except ValueError:
            raise InvalidOptions(f"Unsupported output format: {value!r}") from None


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class QueueState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


def _check_target(name: str, value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidOptions(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidOptions(f"{name} must be positive, got {value}")
    # 0 means "not set", same as None
    return value or None


@dataclass(frozen=True)
class ResizeIntent:
    target_width: Optional[int] = None
    target_height: Optional[int] = None
    maintain_aspect_ratio: bool = True

    def __post_init__(self):
        object.__setattr__(self, "target_width", _check_target("target_width", self.target_width))
        object.__setattr__(self, "target_height", _check_target("target_height", self.target_height))


@dataclass(frozen=True)
class ConversionOptions:
    """Options applied to a job at dispatch time. Quality is ignored for png."""

    format: ImageFormat = field(default_factory=lambda: ImageFormat.parse(DEFAULT_FORMAT))
    quality: int = DEFAULT_QUALITY
    resize: Optional[ResizeIntent] = None

    def __post_init__(self):
        object.__setattr__(self, "format", ImageFormat.parse(self.format))
        if isinstance(self.quality, bool) or not isinstance(self.quality, int):
            raise InvalidOptions(f"quality must be an integer, got {self.quality!r}")
        if not 1 <= self.quality <= 100:
            raise InvalidOptions(f"quality must be within 1-100, got {self.quality}")


class ConversionJob:
    """In-memory state for one admitted source image."""

    def __init__(self, job_id: str, filename: str, source_bytes: bytes, mime_type: str = ""):
        self.job_id = job_id
        self.filename = filename
        self.mime_type = mime_type
        self.source_bytes: Optional[bytes] = source_bytes
        self.source_size = len(source_bytes)
        self.status = JobStatus.PENDING
        self.progress: int = 0
        self.output_bytes: Optional[bytes] = None
        self.output_size: Optional[int] = None  # bytes
        self.output_format: Optional[ImageFormat] = None
        self.width: Optional[int] = None
        self.height: Optional[int] = None
        self.error_message: Optional[str] = None

    @property
    def has_output(self) -> bool:
        return self.status == JobStatus.COMPLETED and bool(self.output_bytes)

    def reset(self) -> None:
        """Back to Pending, dropping any previous output or error."""
        self.status = JobStatus.PENDING
        self.progress = 0
        self.output_bytes = None
        self.output_size = None
        self.output_format = None
        self.width = None
        self.height = None
        self.error_message = None

    def mark_processing(self) -> None:
        self.status = JobStatus.PROCESSING
        self.progress = 0
        self.error_message = None

    def mark_completed(self, output_bytes: bytes, width: int, height: int, fmt: ImageFormat) -> None:
        self.status = JobStatus.COMPLETED
        self.progress = 100
        self.output_bytes = output_bytes
        self.output_size = len(output_bytes)
        self.output_format = fmt
        self.width = width
        self.height = height
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = JobStatus.ERROR
        self.progress = 0
        self.error_message = error_message

    def release(self) -> None:
        self.source_bytes = None
        self.output_bytes = None

    def snapshot(self) -> "JobSnapshot":
        reduction = None
        if self.output_size is not None and self.source_size > 0:
            reduction = round((1 - self.output_size / self.source_size) * 100, 1)
        return JobSnapshot(
            job_id=self.job_id,
            filename=self.filename,
            status=self.status,
            progress=self.progress,
            source_size=self.source_size,
            output_size=self.output_size,
            error_message=self.error_message,
            size_reduction_percent=reduction,
        )


@dataclass(frozen=True)
class JobSnapshot:
    job_id: str
    filename: str
    status: JobStatus
    progress: int
    source_size: int
    output_size: Optional[int]
    error_message: Optional[str]
    size_reduction_percent: Optional[float]  # negative when the output grew

    @property
    def can_download(self) -> bool:
        return self.status == JobStatus.COMPLETED


@dataclass(frozen=True)
class BatchSummary:
    total: int
    completed: int
    errored: int
    pending: int
    processing: int
    source_bytes: int
    output_bytes: int

    @property
    def bytes_saved(self) -> int:
        return self.source_bytes - self.output_bytes
