"""Transform pipeline: decode, orient, crop/resize, effects, encode, publish."""

import base64
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from loguru import logger
from PIL import Image, ImageOps, UnidentifiedImageError

from ..common.errors import EncodeError, SourceNotFound
from ..common.schemas import DerivativeOptions, EncodedImage, SourceImage, canonical_options
from ..common.settings import DerivativeSettings
from ..common.storage import DerivativeStorage
from ..utils.profiling import timed, timed_block
from .driver import OPTIONAL_CODECS, DriverInfo
from .effects import apply_effects, normalize_mode, pixelate
from .encode import encode_image
from .geometry import apply_crop_strategy, apply_orientation_ops, scale

LQIP_WIDTH = 100
LQIP_PIXELATE = 6
LQIP_QUALITY = 20
LQIP_SUFFIX = ".lqip.webp"

# Pillow raises these for truncated, corrupt or oversized inputs
_CODEC_ERRORS = (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError)


def _source_path(source: SourceImage | str | Path) -> Path:
    return source.path if isinstance(source, SourceImage) else Path(source)


class TransformEngine:
    """Runs the fixed transform pipeline with Pillow as the codec backend."""

    def __init__(self, settings: DerivativeSettings, driver: DriverInfo):
        self._settings: DerivativeSettings = settings
        self._driver: DriverInfo = driver

    @property
    def driver(self) -> DriverInfo:
        return self._driver

    @timed
    def generate(
        self,
        source: SourceImage | str | Path,
        width: int,
        height: int,
        options: DerivativeOptions | Mapping[str, Any] | None = None,
        destination: Path | None = None,
    ) -> EncodedImage:
        """
        Produce one derivative.

        The output format follows ``destination``'s extension when given,
        else ``options.format``, else the source's own extension. With a
        destination the bytes are also published there atomically.

        Raises:
            SourceNotFound: The source file does not exist
            EncodeError: Decode, transform, encode or publish failed
        """
        path = _source_path(source)
        if not path.is_file():
            raise SourceNotFound(path)

        if not isinstance(options, DerivativeOptions):
            options = DerivativeOptions.model_validate(canonical_options(options or {}))

        if destination is not None:
            extension = destination.suffix.lstrip(".").lower()
        else:
            extension = options.format or path.suffix.lstrip(".").lower()

        # Anything outside the driver's optional codecs is written as JPEG
        if extension in OPTIONAL_CODECS and not self._driver.supports(extension):
            raise EncodeError(path, f"driver '{self._driver.name}' cannot write {extension}")

        try:
            with Image.open(path) as opened:
                img = ImageOps.exif_transpose(opened)
                img.load()
            img = normalize_mode(img)
            img = apply_orientation_ops(img, options)
            img = apply_crop_strategy(img, width, height, options)
            img = apply_effects(img, options)
        except _CODEC_ERRORS as exc:
            raise EncodeError(path, str(exc)) from exc

        with timed_block(f"encode {extension} {img.width}x{img.height}"):
            encoded = encode_image(
                img,
                extension,
                options.quality,
                webp_quality=self._settings.webp_quality,
                avif_quality=self._settings.avif_quality,
                path=path,
            )

        if destination is not None:
            try:
                DerivativeStorage.write_atomic(destination, encoded.data)
            except OSError as exc:
                raise EncodeError(destination, f"cannot publish: {exc}") from exc
            logger.info(
                f"Generated {destination.name} ({img.width}x{img.height}, {encoded.length} bytes)"
            )

        return encoded

    def lqip(self, source: SourceImage | str | Path) -> str:
        """Return a tiny blurred placeholder as a ``data:`` URI, or "" when unavailable.

        The placeholder is cached beside the source as ``<stem>.lqip.webp``.
        """
        path = _source_path(source)
        if not self._driver.supports("webp"):
            return ""

        target = path.with_name(path.stem + LQIP_SUFFIX)
        try:
            if target.is_file():
                data = target.read_bytes()
            else:
                with Image.open(path) as opened:
                    img = ImageOps.exif_transpose(opened)
                    img.load()
                img = scale(normalize_mode(img), LQIP_WIDTH, None, allow_upscale=False)
                img = pixelate(img, LQIP_PIXELATE)
                data = encode_image(img, "webp", LQIP_QUALITY, path=path).data
                DerivativeStorage.write_atomic(target, data)
        except (EncodeError, *_CODEC_ERRORS) as e:
            logger.warning(f"Could not build placeholder for {path}: {e}")
            return ""

        return "data:image/webp;base64," + base64.b64encode(data).decode("ascii")
