"""Pydantic schemas for requests, options and persisted descriptors."""

from collections.abc import Mapping, Sequence
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Literal

from PIL import ExifTags, Image, UnidentifiedImageError
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .errors import EncodeError, SourceNotFound

# ─────────────────────────────────────────────────────────────
# Responsive configuration tables
# ─────────────────────────────────────────────────────────────


class ConfigEntry(BaseModel):
    """One parsed line of a breakpoint or aspect-ratio table."""

    key: str
    label: str
    value: int | list[int] | str

    @property
    def ratio(self) -> tuple[float, float] | None:
        """(width_units, height_units), or None when the value is not a pair."""
        if isinstance(self.value, list) and len(self.value) == 2:
            return float(self.value[0]), float(self.value[1])
        return None


class ConfigTable(BaseModel):
    default: ConfigEntry | None = None
    data: dict[str, ConfigEntry] = Field(default_factory=dict)


class ResponsiveConfig(BaseModel):
    breakpoints: ConfigTable
    aspect_ratios: ConfigTable
    factors: list[float]
    column_fractions: list[tuple[int, int]]

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class NamedSize(BaseModel):
    width: int
    height: int
    label: str = ""
    options: dict[str, Any] = Field(default_factory=dict)


# ─────────────────────────────────────────────────────────────
# Option bag
# ─────────────────────────────────────────────────────────────

OutputExtension = Literal["jpg", "png", "gif", "webp", "avif"]


def _to_int(value: object) -> int:
    try:
        return int(float(str(value).strip()))
    except (TypeError, ValueError):
        return 0


def normalize_colorize(value: object) -> tuple[int, int, int]:
    """Normalize colorize input into an (r, g, b) integer triple.

    Supports "10,20,30" strings, indexed sequences and
    {"red"|"r": .., "green"|"g": .., "blue"|"b": ..} mappings.
    Missing channels are 0.
    """
    channels: list[object] = [0, 0, 0]
    if isinstance(value, str):
        for i, part in enumerate(value.split(",")[:3]):
            channels[i] = part
    elif isinstance(value, Mapping):
        for i, (long, short) in enumerate((("red", "r"), ("green", "g"), ("blue", "b"))):
            channels[i] = value.get(long, value.get(short, value.get(i, 0)))
    elif isinstance(value, Sequence):
        for i, part in enumerate(list(value)[:3]):
            channels[i] = part
    r, g, b = (_to_int(c) for c in channels)
    return r, g, b


class InsertSpec(BaseModel):
    """Watermark placement descriptor."""

    element: str | None = None
    position: str = "top-left"
    offset_x: int = 0
    offset_y: int = 0
    opacity: int = 100

    @field_validator("offset_x", "offset_y", mode="before")
    @classmethod
    def offset_must_be_int(cls, v: object) -> int:
        return v if isinstance(v, int) and not isinstance(v, bool) else 0

    @field_validator("opacity", mode="before")
    @classmethod
    def opacity_must_be_int(cls, v: object) -> int:
        return v if isinstance(v, int) and not isinstance(v, bool) else 100


class DerivativeOptions(BaseModel):
    """Typed option bag. Unknown keys are kept as extras and never affect the cache key."""

    # Geometry
    cropping: bool | str | list[int | float | str] = "center"
    crop_x: int | None = None
    crop_y: int | None = None
    focus: tuple[float, float] | None = None
    rotate: float | None = None
    flip: str | None = None
    flop: bool = False
    upscaling: bool = False

    # Encoding
    quality: int = Field(default=80, ge=1, le=100)
    format: OutputExtension | None = None
    hidpi: bool = False
    webp_only: bool = Field(default=False, validation_alias=AliasChoices("webp_only", "webpOnly"))
    avif_only: bool = Field(default=False, validation_alias=AliasChoices("avif_only", "avifOnly"))
    webp_add: bool = Field(default=False, validation_alias=AliasChoices("webp_add", "webpAdd"))
    avif_add: bool = Field(default=False, validation_alias=AliasChoices("avif_add", "avifAdd"))

    # Tonal effects
    sharpening: str = "soft"
    brightness: float | None = None
    contrast: float | None = None
    gamma: float | None = None
    colorize: tuple[int, int, int] | None = None
    greyscale: bool = Field(default=False, validation_alias=AliasChoices("greyscale", "grayscale"))
    blur: int | None = None
    sharpen: int | None = None
    invert: bool = False
    pixelate: int | None = None
    insert: InsertSpec | None = None

    # Cache naming / scheduling
    suffix: list[str] = Field(default_factory=list)
    delayed: bool = False

    # Responsive markup
    is_first: bool = Field(default=False, validation_alias=AliasChoices("is_first", "isFirst"))
    sizes: str | None = None
    class_: list[str] = Field(default_factory=list, validation_alias=AliasChoices("class_", "class"))
    style: list[str] = Field(default_factory=list)
    loading: bool | str | None = None
    alt: str | None = None
    base_width: int | None = Field(
        default=None, validation_alias=AliasChoices("base_width", "baseWidth")
    )
    base_height: int | None = Field(
        default=None, validation_alias=AliasChoices("base_height", "baseHeight")
    )

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("colorize", mode="before")
    @classmethod
    def colorize_triple(cls, v: object) -> tuple[int, int, int] | None:
        if v is None or v == "" or v is False:
            return None
        rgb = normalize_colorize(v)
        return None if rgb == (0, 0, 0) else rgb

    @field_validator("focus", mode="before")
    @classmethod
    def focus_pair(cls, v: object) -> tuple[float, float] | None:
        if not v:
            return None
        if isinstance(v, Mapping):
            return float(v.get("top", 50)), float(v.get("left", 50))
        if isinstance(v, Sequence) and not isinstance(v, str):
            items = list(v)
            top = items[0] if len(items) > 0 else 50
            left = items[1] if len(items) > 1 else 50
            return float(top), float(left)
        return None

    @field_validator("flip", mode="before")
    @classmethod
    def flip_direction(cls, v: object) -> str | None:
        if v is True:
            return "horizontal"
        if not v:
            return None
        return str(v)

    @field_validator("suffix", mode="before")
    @classmethod
    def split_suffix(cls, v: object) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return v.split()
        if isinstance(v, Sequence):
            return [str(s) for s in v]
        return [str(v)]

    @field_validator("class_", "style", mode="before")
    @classmethod
    def listify(cls, v: object) -> list[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, Sequence):
            return [str(s) for s in v]
        return [str(v)]

    @field_validator("format", mode="before")
    @classmethod
    def lower_format(cls, v: object) -> str | None:
        if not v:
            return None
        fmt = str(v).lower().lstrip(".")
        return "jpg" if fmt == "jpeg" else fmt

    def to_record(self) -> dict[str, Any]:
        """JSON-safe dict for persistence; opaque extras degrade to strings."""
        return self.model_dump(mode="json", fallback=str)


# ─────────────────────────────────────────────────────────────
# Source images and requests
# ─────────────────────────────────────────────────────────────

_ROTATED_ORIENTATIONS = {5, 6, 7, 8}


class SourceImage(BaseModel):
    """A readable source file with its (orientation-corrected) native size."""

    path: Path
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    description: str = ""

    @classmethod
    def open(cls, path: str | Path, description: str = "") -> "SourceImage":
        path = Path(path)
        if not path.is_file():
            raise SourceNotFound(path)
        try:
            with Image.open(path) as img:
                width, height = img.size
                orientation = img.getexif().get(ExifTags.Base.Orientation)
        except (UnidentifiedImageError, OSError) as exc:
            raise EncodeError(path, str(exc)) from exc
        if orientation in _ROTATED_ORIENTATIONS:
            width, height = height, width
        return cls(path=path, width=width, height=height, description=description)

    @property
    def stem(self) -> str:
        return self.path.stem

    @property
    def ext(self) -> str:
        return self.path.suffix.lstrip(".").lower()


class RequestDescriptor(BaseModel):
    """Canonical, resolved unit of work."""

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    options: DerivativeOptions = Field(default_factory=DerivativeOptions)


class QueueDescriptor(BaseModel):
    """Pending deferred work, persisted beside the derivative as ``<dest>.queue``."""

    source: str
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    options: dict[str, Any] = Field(default_factory=dict)


class Variation(BaseModel):
    """A derivative reference; ``pending`` means a descriptor was queued instead."""

    path: Path
    url: str
    width: int
    height: int
    pending: bool = False

    @property
    def ext(self) -> str:
        return self.path.suffix.lstrip(".").lower()


# ─────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────


class EncodedImage(BaseModel):
    data: bytes
    mime_type: str
    extension: str

    @property
    def length(self) -> int:
        return len(self.data)


class MissStatus(StrEnum):
    fulfilled = "fulfilled"
    not_pending = "not_pending"
    stale = "stale"
    failed = "failed"


class MissResult(BaseModel):
    status: MissStatus
    content: bytes | None = None
    media_type: str | None = None
    content_length: int = 0


OPTION_ALIASES: dict[str, str] = {
    "webpOnly": "webp_only",
    "avifOnly": "avif_only",
    "webpAdd": "webp_add",
    "avifAdd": "avif_add",
    "isFirst": "is_first",
    "baseWidth": "base_width",
    "baseHeight": "base_height",
    "class": "class_",
    "grayscale": "greyscale",
}


def canonical_options(options: Mapping[str, Any]) -> dict[str, Any]:
    """Rename accepted aliases to field names so merge layers override each other."""
    return {OPTION_ALIASES.get(key, key): value for key, value in options.items()}
