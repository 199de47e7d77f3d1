"""Exceptions raised by the conversion core."""


class KagamiError(Exception):
    """Base class for all converter errors."""


class InvalidOptions(KagamiError, ValueError):
    """Conversion options out of range (quality, resize targets, format)."""


class ConversionError(KagamiError):
    """A single image could not be converted."""


class DecodeError(ConversionError):
    """Source bytes are malformed or in an unsupported format."""


class RenderError(ConversionError):
    """No target raster could be allocated."""


class EncodeError(ConversionError):
    """The encoder rejected the format/quality combination."""


class NoCompletedJobs(KagamiError):
    """Archive requested but no job has a completed output."""


class OutputNotReady(KagamiError):
    """Single download requested for a job without output."""
