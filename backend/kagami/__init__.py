"""On-device image conversion: jpeg/png/webp with optional resize and zip export."""
from kagami.batch import build_archive
from kagami.conversion import ConversionOptions, ImageFormat, JobStatus, ResizeIntent
from kagami.session import ConverterSession, SourceFile

__all__ = [
    "ConversionOptions",
    "ConverterSession",
    "ImageFormat",
    "JobStatus",
    "ResizeIntent",
    "SourceFile",
    "build_archive",
]
