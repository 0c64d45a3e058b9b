"""Startup registration of named sizes (aspect ratio x column fraction)."""

import math

from loguru import logger

from ..common.dimensions import DimensionResolver
from ..common.schemas import NamedSize, ResponsiveConfig


def named_size_key(ratio_key: str, numerator: int, denominator: int) -> str:
    """``landscape`` for the full column, ``landscape-1-2`` otherwise."""
    if numerator == denominator:
        return ratio_key
    return f"{ratio_key}-{numerator}-{denominator}"


def register_named_sizes(
    config: ResponsiveConfig, dimensions: DimensionResolver
) -> dict[str, NamedSize]:
    """Build the named-size table for every aspect ratio and column fraction.

    Widths are fractions of the default breakpoint, heights follow the ratio.
    """
    sizes: dict[str, NamedSize] = {}
    base = dimensions.default_max_width

    for ratio_key, entry in config.aspect_ratios.data.items():
        for numerator, denominator in config.column_fractions:
            width = math.ceil(base * numerator / denominator)
            calculated = dimensions.calculate(width, None, ratio_key)
            whole = numerator == denominator
            sizes[named_size_key(ratio_key, numerator, denominator)] = NamedSize(
                width=calculated.width,
                height=calculated.height,
                label=entry.label if whole else f"{entry.label} ({numerator}-{denominator})",
            )

    logger.debug(f"Registered {len(sizes)} named sizes against a {base}px breakpoint")
    return sizes
