"""Encode a processed image to bytes for a destination extension."""

import io
from pathlib import Path

from PIL import Image

from ..common.errors import EncodeError
from ..common.schemas import EncodedImage


def get_pil_format(format_str: str) -> str:
    """Convert an extension to its PIL format name."""
    format_map = {
        "jpg": "JPEG",
        "jpeg": "JPEG",
        "png": "PNG",
        "webp": "WEBP",
        "avif": "AVIF",
        "gif": "GIF",
    }
    # Unknown extensions fall back to JPEG
    return format_map.get(format_str.lower(), "JPEG")


MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "AVIF": "image/avif",
    "GIF": "image/gif",
}


def flatten_alpha(img: Image.Image, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Composite transparent pixels onto a solid background (JPEG has no alpha)."""
    if img.mode in ("RGBA", "LA", "P", "PA"):
        rgba = img.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def encode_image(
    img: Image.Image,
    extension: str,
    quality: int,
    *,
    webp_quality: int | None = None,
    avif_quality: int | None = None,
    path: str | Path = "<memory>",
) -> EncodedImage:
    """
    Encode ``img`` according to ``extension``.

    webp and avif use their per-format quality when configured, png and gif
    take no quality, everything else is written as JPEG at ``quality``.

    Raises:
        EncodeError: Pillow could not write the requested format
    """
    ext = extension.lower().lstrip(".")
    fmt = get_pil_format(ext)

    save_kwargs: dict[str, object] = {}
    if fmt == "WEBP":
        save_kwargs["quality"] = webp_quality or quality
    elif fmt == "AVIF":
        save_kwargs["quality"] = avif_quality or quality
    elif fmt == "PNG":
        save_kwargs["optimize"] = True
    elif fmt == "JPEG":
        img = flatten_alpha(img)
        save_kwargs["quality"] = quality
        save_kwargs["optimize"] = True

    buffer = io.BytesIO()
    try:
        img.save(buffer, format=fmt, **save_kwargs)
    except (KeyError, OSError, ValueError) as exc:
        # KeyError: format has no registered encoder in this Pillow build
        raise EncodeError(path, f"cannot encode {fmt}: {exc}") from exc

    return EncodedImage(
        data=buffer.getvalue(),
        mime_type=MIME_TYPES[fmt],
        extension=ext,
    )
