"""Deterministic derivative file naming.

A derivative of ``photo.jpg`` lives beside it as::

    photo.<width>x<height>[-<token>-<token>...].<ext>

Tokens are emitted in a fixed order, so the name never depends on the
iteration order of the option bag.
"""

import hashlib
import re
from pathlib import Path
from typing import Final

from .schemas import DerivativeOptions, RequestDescriptor, SourceImage
from .settings import DerivativeSettings

INSERT_POSITIONS: Final[dict[str, str]] = {
    "top-left": "tl",
    "top": "t",
    "top-right": "tr",
    "left": "l",
    "center": "c",
    "right": "r",
    "bottom-left": "bl",
    "bottom": "b",
    "bottom-right": "br",
}

_NON_NAME = re.compile(r"[^A-Za-z0-9_]")
_DEFAULT_CROPPING = {"center", "true"}


def sanitize_token(value: str) -> str:
    return _NON_NAME.sub("", value)


def format_number(value: float) -> str:
    """10.0 -> "10", 1.5 -> "1.5"."""
    number = float(value)
    return str(int(number)) if number.is_integer() else f"{number:g}"


def _coordinate(value: int | float | str) -> str:
    return sanitize_token(str(value).replace("%", "p").replace(".", "d"))


class CacheKeyEncoder:
    def __init__(self, settings: DerivativeSettings):
        self._settings: DerivativeSettings = settings

    def extension(self, source: SourceImage, options: DerivativeOptions) -> str:
        if options.format:
            return options.format
        if options.avif_only:
            return "avif"
        if options.webp_only:
            return "webp"
        return source.ext

    def tokens(self, options: DerivativeOptions) -> list[str]:
        parts: list[str] = []

        for tag in options.suffix:
            if cleaned := sanitize_token(tag):
                parts.append(cleaned)

        if options.rotate:
            parts.append(f"rot{int(options.rotate)}")
        if options.flip:
            parts.append(f"flip{sanitize_token(options.flip[:1])}")
        if options.hidpi:
            parts.append("hidpi")

        # Crop info
        cropping = options.cropping
        if options.crop_x is not None and options.crop_y is not None:
            parts.append(f"c{options.crop_x}x{options.crop_y}")
        elif isinstance(cropping, list) and len(cropping) == 2:
            parts.append(f"c{_coordinate(cropping[0])}x{_coordinate(cropping[1])}")
        elif isinstance(cropping, str) and cropping and cropping not in _DEFAULT_CROPPING:
            if cleaned := sanitize_token(cropping):
                parts.append(cleaned)
        elif options.focus is not None and cropping in (True, "center", "true"):
            top, left = options.focus
            parts.append(f"f{format_number(top)}x{format_number(left)}")

        insert = options.insert
        if insert is not None and insert.element:
            digest = hashlib.md5(insert.element.encode("utf-8")).hexdigest()
            pos = INSERT_POSITIONS.get(insert.position, "tl")
            parts.append(
                f"ins{digest}_{pos}_{insert.offset_x}x{insert.offset_y}_{insert.opacity}"
            )

        if options.gamma:
            parts.append(f"gam{format_number(options.gamma)}")
        if options.brightness:
            parts.append(f"bri{format_number(options.brightness)}")
        if options.contrast:
            parts.append(f"con{format_number(options.contrast)}")
        if options.colorize is not None:
            r, g, b = options.colorize
            parts.append(f"col{r}-{g}-{b}")
        if options.greyscale:
            parts.append("gre")
        if options.flop and not options.flip:
            parts.append("flop")
        if options.blur:
            parts.append(f"blu{options.blur}")
        if options.sharpen:
            parts.append(f"sha{options.sharpen}")
        if options.invert:
            parts.append("inv")
        if options.pixelate:
            parts.append(f"pix{options.pixelate}")

        parts.extend(self._policy_tokens(options))
        return parts

    def _policy_tokens(self, options: DerivativeOptions) -> list[str]:
        """Per-call deviations from engine-wide policy that change pixels."""
        parts: list[str] = []
        if options.cropping is False:
            parts.append("nc")
        if options.sharpening != "soft" and not options.sharpen:
            parts.append(f"sp{sanitize_token(options.sharpening)}")
        if options.quality != self._settings.quality:
            parts.append(f"q{options.quality}")
        if options.upscaling != self._settings.upscale:
            parts.append("up" if options.upscaling else "noup")
        return parts

    def suffix(self, descriptor: RequestDescriptor) -> str:
        parts = self.tokens(descriptor.options)
        size = f".{descriptor.width}x{descriptor.height}"
        return size + (f"-{'-'.join(parts)}" if parts else "")

    def variation_path(self, source: SourceImage, descriptor: RequestDescriptor) -> Path:
        ext = self.extension(source, descriptor.options)
        return source.path.parent / f"{source.stem}{self.suffix(descriptor)}.{ext}"
