"""Decode -> resize -> encode for a single image held in memory."""
import io
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from PIL import Image, ImageSequence, UnidentifiedImageError

from kagami.config import MAX_IMAGE_PIXELS
from kagami.conversion.models import ConversionOptions, ImageFormat
from kagami.conversion.resize import resample_onto, resolve_dimensions
from kagami.errors import DecodeError, EncodeError, RenderError

logger = logging.getLogger("kagami.pipeline")

if MAX_IMAGE_PIXELS > 0:
    Image.MAX_IMAGE_PIXELS = MAX_IMAGE_PIXELS

ProgressCallback = Callable[[int], None]

WHITE = (255, 255, 255)
TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class ConversionResult:
    data: bytes
    width: int
    height: int
    format: ImageFormat


def encoder_params(fmt: ImageFormat, quality: int) -> dict:
    """Pillow save() keyword arguments. png gets no quality at all."""
    if not fmt.is_lossy:
        return {"format": "PNG"}
    # normalized 0.0-1.0 lossy quality, expressed on Pillow's 0-100 scale
    lossy_quality = min(100, max(1, quality)) / 100
    pil_quality = int(round(lossy_quality * 100))
    if fmt == ImageFormat.JPEG:
        return {"format": "JPEG", "quality": pil_quality}
    return {"format": "WEBP", "quality": pil_quality}


def _decode(source_bytes: bytes) -> Image.Image:
    try:
        with Image.open(io.BytesIO(source_bytes)) as img:
            # first frame only for animated gif/webp
            frame = next(ImageSequence.Iterator(img))
            return frame.convert("RGBA")
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Unsupported or unreadable image: {e}") from e
    except (OSError, SyntaxError, ValueError, EOFError, StopIteration) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e


def _new_canvas(fmt: ImageFormat, width: int, height: int) -> Image.Image:
    try:
        if fmt.has_alpha:
            return Image.new("RGBA", (width, height), TRANSPARENT)
        # jpeg has no alpha: fill white before compositing
        return Image.new("RGB", (width, height), WHITE)
    except (MemoryError, ValueError) as e:
        raise RenderError(f"Could not allocate {width}x{height} canvas: {e}") from e


def _encode(canvas: Image.Image, fmt: ImageFormat, quality: int) -> bytes:
    buf = io.BytesIO()
    try:
        canvas.save(buf, **encoder_params(fmt, quality))
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"Encoder rejected {fmt.value} (quality={quality}): {e}") from e
    return buf.getvalue()


def convert(
    source_bytes: bytes,
    options: ConversionOptions,
    on_progress: Optional[ProgressCallback] = None,
) -> ConversionResult:
    """Convert one image. Raises DecodeError, RenderError or EncodeError."""

    def report(percent: int) -> None:
        if on_progress:
            on_progress(percent)

    report(10)
    source = _decode(source_bytes)
    try:
        report(30)
        resize = options.resize
        if resize is not None:
            width, height = resolve_dimensions(
                source.width,
                source.height,
                resize.target_width,
                resize.target_height,
                resize.maintain_aspect_ratio,
            )
        else:
            width, height = source.width, source.height

        canvas = _new_canvas(options.format, width, height)
        report(50)
        try:
            resample_onto(source, canvas)
        except MemoryError as e:
            raise RenderError(f"Out of memory resampling to {width}x{height}") from e
        report(70)

        data = _encode(canvas, options.format, options.quality)
        report(90)
    finally:
        source.close()
    logger.debug(
        "Converted %sx%s -> %sx%s %s (%s bytes)",
        source.width, source.height, width, height, options.format.value, len(data),
    )
    return ConversionResult(data=data, width=width, height=height, format=options.format)
