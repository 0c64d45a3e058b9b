"""Tonal effects and watermark placement.

Each effect works on RGB or RGBA images and leaves alpha untouched.
"""

from pathlib import Path
from typing import Final

from PIL import Image, ImageEnhance, ImageFilter, ImageOps

from ..common.schemas import DerivativeOptions, InsertSpec
from .geometry import ALIGNMENTS

SHARPENING_PRESETS: Final[dict[str, int]] = {
    "none": 0,
    "soft": 10,
    "medium": 20,
    "strong": 40,
}


def normalize_mode(img: Image.Image) -> Image.Image:
    """Convert to RGB, or RGBA when the source carries transparency."""
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode in ("LA", "PA") or "transparency" in img.info:
        return img.convert("RGBA")
    return img.convert("RGB")


def _split_alpha(img: Image.Image) -> tuple[Image.Image, Image.Image | None]:
    if img.mode == "RGBA":
        return img.convert("RGB"), img.getchannel("A")
    return img, None


def _merge_alpha(rgb: Image.Image, alpha: Image.Image | None) -> Image.Image:
    if alpha is None:
        return rgb
    rgba = rgb.convert("RGBA")
    rgba.putalpha(alpha)
    return rgba


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def sharpen(img: Image.Image, amount: int) -> Image.Image:
    """Unsharp mask; ``amount`` is 0-100."""
    if amount <= 0:
        return img
    percent = int(_clamp(amount, 0, 100) * 5)
    return img.filter(ImageFilter.UnsharpMask(radius=2, percent=percent, threshold=0))


def brightness(img: Image.Image, level: float) -> Image.Image:
    """``level`` is -100 (black) to +100 (twice as bright)."""
    factor = 1 + _clamp(level, -100, 100) / 100
    return ImageEnhance.Brightness(img).enhance(factor)


def contrast(img: Image.Image, level: float) -> Image.Image:
    factor = 1 + _clamp(level, -100, 100) / 100
    return ImageEnhance.Contrast(img).enhance(factor)


def gamma(img: Image.Image, value: float) -> Image.Image:
    if value <= 0:
        return img
    lut = [min(255, round(255 * (i / 255) ** (1 / value))) for i in range(256)]
    rgb, alpha = _split_alpha(img)
    return _merge_alpha(rgb.point(lut * 3), alpha)


def colorize(img: Image.Image, red: int, green: int, blue: int) -> Image.Image:
    """Shift each channel by -100..100 percent of its range."""
    lut: list[int] = []
    for level in (red, green, blue):
        shift = round(_clamp(level, -100, 100) * 255 / 100)
        lut.extend(int(_clamp(i + shift, 0, 255)) for i in range(256))
    rgb, alpha = _split_alpha(img)
    return _merge_alpha(rgb.point(lut), alpha)


def greyscale(img: Image.Image) -> Image.Image:
    rgb, alpha = _split_alpha(img)
    return _merge_alpha(ImageOps.grayscale(rgb).convert("RGB"), alpha)


def blur(img: Image.Image, amount: int) -> Image.Image:
    if amount <= 0:
        return img
    return img.filter(ImageFilter.GaussianBlur(radius=amount))


def invert(img: Image.Image) -> Image.Image:
    rgb, alpha = _split_alpha(img)
    return _merge_alpha(ImageOps.invert(rgb), alpha)


def pixelate(img: Image.Image, size: int) -> Image.Image:
    if size <= 1:
        return img
    small = img.resize(
        (max(img.width // size, 1), max(img.height // size, 1)), Image.Resampling.BOX
    )
    return small.resize(img.size, Image.Resampling.NEAREST)


def place(img: Image.Image, insert: InsertSpec) -> Image.Image:
    """Composite the watermark ``insert.element`` at its aligned, offset position."""
    if not insert.element:
        return img

    with Image.open(Path(insert.element)) as opened:
        overlay = ImageOps.exif_transpose(opened).convert("RGBA")

    opacity = _clamp(insert.opacity, 0, 100)
    if opacity < 100:
        alpha = overlay.getchannel("A").point(lambda a: round(a * opacity / 100))
        overlay.putalpha(alpha)

    horizontal, vertical = ALIGNMENTS.get(insert.position, ALIGNMENTS["top-left"])
    x = _offset(img.width - overlay.width, horizontal, insert.offset_x)
    y = _offset(img.height - overlay.height, vertical, insert.offset_y)

    base = img.convert("RGBA")
    base.alpha_composite(overlay, dest=(max(x, 0), max(y, 0)))
    return base if img.mode == "RGBA" else base.convert("RGB")


def _offset(free_space: int, anchor: float, offset: int) -> int:
    # Offsets push away from the anchored edge
    if anchor == 0.0:
        return offset
    if anchor == 1.0:
        return free_space - offset
    return free_space // 2 + offset


def apply_effects(img: Image.Image, options: DerivativeOptions) -> Image.Image:
    """Apply tonal effects in their fixed order, each only when set."""
    if not options.sharpen:
        img = sharpen(img, SHARPENING_PRESETS.get(options.sharpening, 10))

    if options.brightness is not None:
        img = brightness(img, options.brightness)
    if options.contrast is not None:
        img = contrast(img, options.contrast)
    if options.gamma is not None:
        img = gamma(img, options.gamma)
    if options.colorize is not None:
        img = colorize(img, *options.colorize)
    if options.greyscale:
        img = greyscale(img)
    if options.blur:
        img = blur(img, options.blur)
    if options.sharpen:
        img = sharpen(img, options.sharpen)
    if options.invert:
        img = invert(img)
    if options.pixelate:
        img = pixelate(img, options.pixelate)
    if options.insert is not None:
        img = place(img, options.insert)

    return img
