"""Crop/resize strategy selection."""

import re
from typing import Final

from PIL import Image, ImageOps

from ..common.schemas import DerivativeOptions

# Alignment name -> (horizontal, vertical) centering for ImageOps.fit
ALIGNMENTS: Final[dict[str, tuple[float, float]]] = {
    "top-left": (0.0, 0.0),
    "top": (0.5, 0.0),
    "top-right": (1.0, 0.0),
    "left": (0.0, 0.5),
    "center": (0.5, 0.5),
    "right": (1.0, 0.5),
    "bottom-left": (0.0, 1.0),
    "bottom": (0.5, 1.0),
    "bottom-right": (1.0, 1.0),
}

CROP_DIRECTIONS: Final[dict[str, str]] = {
    "north": "top",
    "n": "top",
    "northwest": "top-left",
    "nw": "top-left",
    "northeast": "top-right",
    "ne": "top-right",
    "south": "bottom",
    "s": "bottom",
    "southwest": "bottom-left",
    "sw": "bottom-left",
    "southeast": "bottom-right",
    "se": "bottom-right",
    "west": "left",
    "w": "left",
    "east": "right",
    "e": "right",
}

_COORDINATE_CROP = re.compile(r"^x(\d+)y(\d+)$", re.IGNORECASE)


def map_crop_position(cropping: bool | str | object) -> str:
    """Map a cropping direction (compass name or abbreviation) to an alignment."""
    if cropping is True or cropping in ("true", "center"):
        return "center"
    return CROP_DIRECTIONS.get(str(cropping).lower(), "center")


def map_focus_to_position(focus: tuple[float, float]) -> str:
    """Map a ``(top%, left%)`` focus point to one of nine thirds-based zones."""
    top, left = focus

    vertical = "center"
    if top < 33:
        vertical = "top"
    elif top > 66:
        vertical = "bottom"

    horizontal = "center"
    if left < 33:
        horizontal = "left"
    elif left > 66:
        horizontal = "right"

    if vertical == "center" and horizontal == "center":
        return "center"
    if vertical == "center":
        return horizontal
    if horizontal == "center":
        return vertical
    return f"{vertical}-{horizontal}"


def parse_coordinate_cropping(cropping: object) -> tuple[int, int] | None:
    """``"x100y200"`` -> (100, 200)."""
    if not isinstance(cropping, str):
        return None
    match = _COORDINATE_CROP.match(cropping)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def _axis_offset(value: int | float | str, extent: int) -> int:
    text = str(value)
    if "%" in text:
        return int(extent * (float(text.replace("%", "")) / 100))
    return int(float(text))


def crop_at(img: Image.Image, width: int, height: int, x: int, y: int) -> Image.Image:
    """Crop ``width`` x ``height`` anchored at (x, y); 0 means "to the edge"."""
    w = width if width > 0 else max(img.width - x, 1)
    h = height if height > 0 else max(img.height - y, 1)
    return img.crop((x, y, x + w, y + h))


def scale(
    img: Image.Image, width: int | None, height: int | None, allow_upscale: bool
) -> Image.Image:
    """Proportional resize to fit within ``width`` x ``height`` (either may be None)."""
    factors: list[float] = []
    if width:
        factors.append(width / img.width)
    if height:
        factors.append(height / img.height)
    if not factors:
        return img

    factor = min(factors)
    if not allow_upscale:
        factor = min(factor, 1.0)
    if factor == 1.0:
        return img

    size = (max(round(img.width * factor), 1), max(round(img.height * factor), 1))
    return img.resize(size, Image.Resampling.LANCZOS)


def cover(img: Image.Image, width: int, height: int, align: str) -> Image.Image:
    """Resize and crop to fill exactly ``width`` x ``height``, anchored at ``align``."""
    return ImageOps.fit(
        img,
        (width, height),
        method=Image.Resampling.LANCZOS,
        centering=ALIGNMENTS.get(align, ALIGNMENTS["center"]),
    )


def apply_orientation_ops(img: Image.Image, options: DerivativeOptions) -> Image.Image:
    """Rotate (counter-clockwise, canvas expanded), then flip or flop."""
    # Whole degrees only, matching the ``rot<n>`` name token
    degrees = int(options.rotate or 0)
    if degrees:
        fill = (0, 0, 0, 0) if img.mode == "RGBA" else (255, 255, 255)
        img = img.rotate(
            degrees, resample=Image.Resampling.BICUBIC, expand=True, fillcolor=fill
        )

    if options.flip:
        img = ImageOps.flip(img) if options.flip.startswith("v") else ImageOps.mirror(img)
    elif options.flop:
        img = ImageOps.mirror(img)

    return img


def apply_crop_strategy(
    img: Image.Image, width: int, height: int, options: DerivativeOptions
) -> Image.Image:
    """Select and apply one crop/resize strategy, by priority.

    1. explicit ``crop_x``/``crop_y``
    2. ``"x<N>y<N>"`` cropping string
    3. two-element cropping array of pixels or percentages
    4. standard mode: focus-aligned cover, compass-aligned cover, or proportional scale
    """
    cropping = options.cropping

    if options.crop_x is not None and options.crop_y is not None:
        return crop_at(img, width, height, options.crop_x, options.crop_y)

    coordinates = parse_coordinate_cropping(cropping)
    if coordinates is not None:
        return crop_at(img, width, height, *coordinates)

    if isinstance(cropping, list) and len(cropping) == 2:
        x = _axis_offset(cropping[0], img.width)
        y = _axis_offset(cropping[1], img.height)
        return crop_at(img, width, height, x, y)

    is_cover = False
    align = "center"
    if cropping in (True, "center") and options.focus is not None and width and height:
        align = map_focus_to_position(options.focus)
        is_cover = True
    elif width and height and cropping is not False:
        align = map_crop_position(cropping)
        is_cover = True

    if is_cover:
        if options.upscaling:
            return cover(img, width, height, align)
        if width > img.width or height > img.height:
            return scale(img, width, height, allow_upscale=False)
        return cover(img, width, height, align)

    return scale(img, width or None, height or None, allow_upscale=options.upscaling)
