"""Target size resolution and resampling onto the output canvas."""
import logging
import math
from typing import Optional, Tuple

from PIL import Image

from kagami.config import RESAMPLE_FILTER

logger = logging.getLogger("kagami.resize")

_FILTERS = {
    "lanczos": Image.Resampling.LANCZOS,
    "bicubic": Image.Resampling.BICUBIC,
    "bilinear": Image.Resampling.BILINEAR,
}


def _round(value: float) -> int:
    # round half away from zero
    return int(math.floor(value + 0.5))


def resolve_dimensions(
    original_width: int,
    original_height: int,
    target_width: Optional[int] = None,
    target_height: Optional[int] = None,
    maintain_aspect_ratio: bool = True,
) -> Tuple[int, int]:
    """
    Output (width, height) for a source size and a resize intent.
    - no target: original size.
    - both, aspect not kept: exact targets (may distort).
    - one target: the other follows the source aspect ratio.
    - both, aspect kept: fit within the box using the smaller scale factor.
    Results are clamped to at least 1.
    """
    if not target_width and not target_height:
        width, height = original_width, original_height
    elif target_width and target_height and not maintain_aspect_ratio:
        width, height = target_width, target_height
    elif target_width and not target_height:
        aspect_ratio = original_width / original_height
        width, height = target_width, _round(target_width / aspect_ratio)
    elif target_height and not target_width:
        aspect_ratio = original_width / original_height
        width, height = _round(target_height * aspect_ratio), target_height
    else:
        scale = min(target_width / original_width, target_height / original_height)
        width, height = _round(original_width * scale), _round(original_height * scale)
    return max(1, width), max(1, height)


def get_resample_filter(name: Optional[str] = None) -> Image.Resampling:
    name = (name or RESAMPLE_FILTER).lower()
    resample = _FILTERS.get(name)
    if resample is None:
        logger.warning("Unknown resample filter %s, using lanczos", name)
        return Image.Resampling.LANCZOS
    return resample


def resample_onto(source: Image.Image, canvas: Image.Image, resample: Optional[Image.Resampling] = None) -> Image.Image:
    """
    Scale source to the canvas size and composite it over the canvas.
    The canvas background (white for jpeg, transparent otherwise) shows
    through wherever the source is transparent.
    """
    if resample is None:
        resample = get_resample_filter()
    if source.mode != "RGBA":
        source = source.convert("RGBA")
    if source.size != canvas.size:
        # RGBA is resized premultiplied, so transparent edges do not bleed dark
        source = source.resize(canvas.size, resample)
    if canvas.mode == "RGBA":
        canvas.alpha_composite(source)
    else:
        canvas.paste(source, (0, 0), source)
    return canvas
