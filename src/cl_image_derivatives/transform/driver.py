"""Image codec backend detection."""

import warnings

from PIL import features
from pydantic import BaseModel

from ..common.errors import DriverUnavailable

SUPPORTED_DRIVERS = ("auto", "pillow")
OPTIONAL_CODECS = ("webp", "avif")


class DriverInfo(BaseModel):
    name: str
    version: str
    formats: frozenset[str]

    def supports(self, extension: str) -> bool:
        return extension.lower() in self.formats


def _has(feature: str) -> bool:
    with warnings.catch_warnings():
        # Older Pillow builds warn on unknown feature names (e.g. "avif")
        warnings.simplefilter("ignore")
        try:
            return bool(features.check(feature))
        except (ValueError, ImportError):
            return False


def select_driver(name: str = "auto") -> DriverInfo:
    """Verify the requested backend can decode and encode the core formats.

    Raises:
        DriverUnavailable: Unknown driver name, or Pillow lacks JPEG/PNG codecs.
    """
    if name not in SUPPORTED_DRIVERS:
        raise DriverUnavailable(name, f"expected one of {', '.join(SUPPORTED_DRIVERS)}")

    if not (_has("jpg") and _has("zlib")):
        raise DriverUnavailable(name, "Pillow was built without JPEG/PNG support")

    formats = {"jpg", "jpeg", "png", "gif"}
    formats.update(codec for codec in OPTIONAL_CODECS if _has(codec))

    return DriverInfo(
        name="pillow",
        version=features.version("PIL") or "unknown",
        formats=frozenset(formats),
    )
