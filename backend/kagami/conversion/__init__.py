from .job_queue import ConversionQueue
from .models import ConversionJob, ConversionOptions, ImageFormat, JobStatus, ResizeIntent
from .pipeline import convert
from .resize import resolve_dimensions
from .worker import ConversionWorker

__all__ = [
    "ConversionQueue",
    "ConversionJob",
    "ConversionOptions",
    "ConversionWorker",
    "ImageFormat",
    "JobStatus",
    "ResizeIntent",
    "convert",
    "resolve_dimensions",
]
