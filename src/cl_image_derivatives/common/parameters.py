"""Normalization of heterogeneous call-site arguments into a RequestDescriptor."""

import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .schemas import (
    DerivativeOptions,
    NamedSize,
    RequestDescriptor,
    SourceImage,
    canonical_options,
)
from .settings import DerivativeSettings

# Shapes accepted at the call-site boundary
WidthArg = int | str | None
HeightArg = int | Mapping[str, Any] | None
OptionsArg = Mapping[str, Any] | str | int | bool | None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def options_from_shorthand(options: OptionsArg) -> dict[str, Any]:
    """str -> cropping, int -> quality, bool -> upscaling."""
    if isinstance(options, Mapping):
        return dict(options)
    if isinstance(options, bool):
        return {"upscaling": options}
    if isinstance(options, int):
        return {"quality": options}
    if isinstance(options, str):
        return {"cropping": options}
    return {}


def normalize_insert(value: object) -> dict[str, Any] | None:
    """Normalize a watermark descriptor; unreadable elements become None."""
    if not value:
        return None

    if isinstance(value, SourceImage):
        insert: dict[str, Any] = {"element": str(value.path)}
    elif isinstance(value, (str, Path)):
        insert = {"element": str(value)}
    elif isinstance(value, Mapping):
        insert = dict(value)
    else:
        insert = {}

    insert = {
        "element": None,
        "position": "top-left",
        "offset_x": 0,
        "offset_y": 0,
        "opacity": 100,
        **insert,
    }

    element = insert["element"]
    if isinstance(element, SourceImage):
        element = str(element.path)
    if element is not None and not Path(str(element)).is_file():
        element = None
    insert["element"] = str(element) if element is not None else None
    for key, fallback in (("offset_x", 0), ("offset_y", 0), ("opacity", 100)):
        value = insert[key]
        if not isinstance(value, int) or isinstance(value, bool):
            insert[key] = fallback
    return insert


class ParameterResolver:
    """Resolves ``(width, height, options)`` call arguments against a source image.

    The named-size table is populated once at startup (see
    ``responsive.named_sizes.register_named_sizes``).
    """

    def __init__(self, settings: DerivativeSettings, named_sizes: Mapping[str, NamedSize]):
        self._settings: DerivativeSettings = settings
        self._named_sizes: Mapping[str, NamedSize] = named_sizes

    @property
    def named_sizes(self) -> Mapping[str, NamedSize]:
        return self._named_sizes

    def resolve(
        self,
        source: SourceImage,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> RequestDescriptor:
        call_options = options_from_shorthand(options)

        if isinstance(height, Mapping):
            call_options = {**call_options, **height}
            height = 0
        h = height if isinstance(height, int) and not isinstance(height, bool) else 0

        size_options: dict[str, Any] = {}
        w = 0
        if isinstance(width, str):
            named = self._named_sizes.get(width)
            if named is not None:
                w = named.width
                h = named.height if h == 0 else h
                size_options = dict(named.options)
            elif width.strip().isdigit():
                w = int(width.strip())
        elif isinstance(width, int) and not isinstance(width, bool):
            w = width

        w, h = max(w, 0), max(h, 0)
        if w > 0 and h == 0:
            h = round_half_up(w * (source.height / source.width))
        elif h > 0 and w == 0:
            w = round_half_up(h / (source.height / source.width))

        merged: dict[str, Any] = {
            **canonical_options(self._settings.default_options()),
            **canonical_options(self._settings.core_options),
            **canonical_options(size_options),
            **canonical_options(call_options),
        }
        if merged.get("insert"):
            merged["insert"] = normalize_insert(merged["insert"])
        else:
            merged.pop("insert", None)

        return RequestDescriptor(
            width=w,
            height=h,
            options=DerivativeOptions.model_validate(merged),
        )
