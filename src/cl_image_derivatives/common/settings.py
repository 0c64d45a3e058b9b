"""Immutable engine settings, constructed once and passed to every component."""

from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

DEFAULT_BREAKPOINTS = "640=s|Small\n960=m|Medium\n1200=+l|Large\n1600=xl|Extra Large"
DEFAULT_ASPECT_RATIOS = "1:1=square|Square\n16:9=+landscape|Landscape\n3:4=portrait|Portrait"
DEFAULT_FACTORS = "0.5,1,1.5,2"
DEFAULT_COLUMN_WIDTHS = "1-1,1-2,1-3,2-3,1-4,3-4,1-5,1-6"


class OutputFormat(StrEnum):
    original = "original"
    webp_only = "webp_only"
    avif_only = "avif_only"


class DerivativeSettings(BaseModel):
    """Engine-wide configuration.

    Attributes:
        root: Filesystem root that sources and derivatives live under
        base_url: URL prefix mapped onto ``root``
        driver: Image codec backend ("auto" or "pillow")
        quality: Default encode quality (1-100)
        output_format: Forces derivatives to webp/avif, or keeps the source extension
        delayed: Defer generation until the derivative URL is requested
        lqip: Attach a low-quality placeholder to rendered attributes
        upscale: Allow derivatives larger than their source
        avif_add / webp_add: Emit extra <source> sets in rendered markup
        breakpoints / aspect_ratios: Line-oriented tables (``value=+key|Label``)
        factors: Comma-separated srcset scale factors
        column_widths: Comma-separated grid fractions (``n-d`` or ``n/d``)
        webp_quality / avif_quality: Per-format quality overrides
        core_options: Host-level option defaults merged under per-call options
        generate_timeout: Upper bound in seconds for on-demand generation over HTTP
    """

    root: Path
    base_url: str = "/"
    driver: Literal["auto", "pillow"] = "auto"
    quality: int = Field(default=80, ge=1, le=100)
    output_format: OutputFormat = OutputFormat.webp_only

    delayed: bool = True
    lqip: bool = True
    lazyload: bool = True
    inline_lazyload: bool = True
    upscale: bool = False
    avif_add: bool = False
    webp_add: bool = False

    breakpoints: str = DEFAULT_BREAKPOINTS
    aspect_ratios: str = DEFAULT_ASPECT_RATIOS
    factors: str = DEFAULT_FACTORS
    column_widths: str = DEFAULT_COLUMN_WIDTHS

    webp_quality: int | None = Field(default=None, ge=1, le=100)
    avif_quality: int | None = Field(default=None, ge=1, le=100)

    core_options: dict[str, Any] = Field(default_factory=dict)
    generate_timeout: float | None = Field(default=30.0, gt=0)

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    @field_validator("root")
    @classmethod
    def resolve_root(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    @field_validator("base_url")
    @classmethod
    def normalize_base_url(cls, v: str) -> str:
        return v.rstrip("/") + "/"

    @field_validator("breakpoints", "aspect_ratios", "factors", "column_widths", mode="before")
    @classmethod
    def blank_falls_back_to_default(cls, v: object, info: ValidationInfo) -> object:
        # An empty admin field means "use the shipped table"
        if v is None or (isinstance(v, str) and not v.strip()):
            return {
                "breakpoints": DEFAULT_BREAKPOINTS,
                "aspect_ratios": DEFAULT_ASPECT_RATIOS,
                "factors": DEFAULT_FACTORS,
                "column_widths": DEFAULT_COLUMN_WIDTHS,
            }[info.field_name]
        return v

    def default_options(self) -> dict[str, Any]:
        """Global option defaults, the lowest layer of the option merge."""
        return {
            "delayed": self.delayed,
            "upscaling": self.upscale,
            "cropping": "center",
            "quality": self.quality,
            "sharpening": "soft",
            "webp_only": self.output_format == OutputFormat.webp_only,
            "avif_only": self.output_format == OutputFormat.avif_only,
            "webp_add": self.webp_add,
            "avif_add": self.avif_add,
        }
