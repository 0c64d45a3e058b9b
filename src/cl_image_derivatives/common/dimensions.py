"""Breakpoint and aspect-ratio driven dimension calculation."""

import math
from typing import Final

from pydantic import BaseModel

from .schemas import ResponsiveConfig

FALLBACK_MAX_WIDTH: Final[int] = 1200


class Dimensions(BaseModel):
    width: int
    height: int
    max_width: int
    ratio: float


class DimensionResolver:
    """Computes target width/height from a ratio key and/or breakpoint key.

    Ratio-driven sizing always clamps to the breakpoint ceiling;
    free-form sizing never does.
    """

    def __init__(self, config: ResponsiveConfig):
        self._config: ResponsiveConfig = config

    @property
    def default_max_width(self) -> int:
        default = self._config.breakpoints.default
        if default is not None and isinstance(default.value, int):
            return default.value
        return FALLBACK_MAX_WIDTH

    def max_width(self, breakpoint_key: str | None = None) -> int:
        entry = self._config.breakpoints.data.get(breakpoint_key or "")
        if entry is not None and isinstance(entry.value, int):
            return entry.value
        return self.default_max_width

    def ratio(self, ratio_key: str | None = None) -> float:
        """height_units / width_units for the key (or the table default), 1:1 when invalid."""
        table = self._config.aspect_ratios
        entry = table.data.get(ratio_key or "") or table.default
        pair = entry.ratio if entry is not None else None
        aw, ah = pair if pair is not None else (1.0, 1.0)
        return ah / (aw or 1.0)

    def calculate(
        self,
        width: int | None = None,
        height: int | None = None,
        ratio_key: str | None = None,
        breakpoint_key: str | None = None,
    ) -> Dimensions:
        max_width = self.max_width(breakpoint_key)
        ratio = self.ratio(ratio_key)

        if ratio_key:
            w = min(width, max_width) if width and width > 0 else max_width
            h = math.ceil(w * ratio)
        else:
            w = width or max_width
            h = height or math.ceil(w * ratio)

        return Dimensions(width=w, height=h, max_width=max_width, ratio=ratio)
