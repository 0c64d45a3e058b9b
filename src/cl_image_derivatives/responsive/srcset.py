"""Srcset and image-attribute derivation."""

from collections.abc import Callable, Sequence
from typing import Any, Final

from ..common.dimensions import DimensionResolver
from ..common.parameters import round_half_up
from ..common.schemas import DerivativeOptions, RequestDescriptor, SourceImage, Variation
from ..common.settings import DerivativeSettings

SNAP_THRESHOLD: Final[int] = 150
RATIO_TOLERANCE: Final[float] = 0.01

# (source, resolved descriptor) -> derivative reference
VariationFactory = Callable[[SourceImage, RequestDescriptor], Variation]
PlaceholderFactory = Callable[[SourceImage], str]


def base_size(
    source: SourceImage, descriptor: RequestDescriptor, default_max_width: int
) -> tuple[int, int]:
    """Reference size the scale factors multiply."""
    options = descriptor.options
    if options.base_width and options.base_height:
        return options.base_width, options.base_height
    if descriptor.width > 0:
        return descriptor.width, descriptor.height
    width = min(source.width, default_max_width)
    return width, round_half_up(width * source.height / source.width)


def srcset_sizes(
    source: SourceImage,
    base_width: int,
    base_height: int,
    factors: Sequence[float],
    threshold: int = SNAP_THRESHOLD,
) -> dict[int, int]:
    """Map each scaled width to its height, ascending by width.

    Widths within ``threshold`` of the native width snap to it. A snapped
    width keeps the native height exactly when the ratios agree.
    """
    native_ratio = source.width / source.height
    target_ratio = base_width / base_height if base_height > 0 else native_ratio

    sizes: dict[int, int] = {}
    for factor in factors:
        w = int(base_width * factor)
        if w >= source.width - threshold:
            w = source.width

        if w == source.width and abs(target_ratio - native_ratio) < RATIO_TOLERANCE:
            h = source.height
        else:
            h = round_half_up(w / target_ratio)
        sizes[w] = h

    return dict(sorted(sizes.items()))


def join_srcset(candidates: Sequence[tuple[str, int]]) -> str:
    """``[(url, w), ...]`` -> ``"url 640w, url 1280w"``, duplicates dropped."""
    tokens: list[str] = []
    for url, width in candidates:
        token = f"{url} {width}w"
        if token not in tokens:
            tokens.append(token)
    return ", ".join(tokens)


class ResponsiveSetBuilder:
    """Builds srcset strings and the attribute set for an ``<img>``/``<picture>``."""

    def __init__(
        self,
        settings: DerivativeSettings,
        dimensions: DimensionResolver,
        factors: Sequence[float],
        variation: VariationFactory,
        placeholder: PlaceholderFactory,
    ):
        self._settings: DerivativeSettings = settings
        self._dimensions: DimensionResolver = dimensions
        self._factors: list[float] = list(factors)
        self._variation: VariationFactory = variation
        self._placeholder: PlaceholderFactory = placeholder

    def srcset(self, source: SourceImage, descriptor: RequestDescriptor) -> str:
        base_width, base_height = base_size(
            source, descriptor, self._dimensions.default_max_width
        )
        sizes = srcset_sizes(source, base_width, base_height, self._factors)

        candidates: list[tuple[str, int]] = []
        for w, h in sizes.items():
            variation = self._variation(
                source, RequestDescriptor(width=w, height=h, options=descriptor.options)
            )
            candidates.append((variation.url, w))
        return join_srcset(candidates)

    def attrs(self, source: SourceImage, descriptor: RequestDescriptor) -> dict[str, Any]:
        """Attribute mapping for rendering.

        Keys: src, width, height, alt, srcset, sources, sizes, class, style,
        loading, decoding and (for the first image on a page) fetchpriority.
        """
        options = descriptor.options
        width, height = descriptor.width, descriptor.height
        if width == 0:
            width = min(source.width, self._dimensions.default_max_width)
            height = round_half_up(width * source.height / source.width)

        main = self._variation(
            source, RequestDescriptor(width=width, height=height, options=options)
        )

        srcset_options = options.model_copy(
            update={"base_width": width, "base_height": height}
        )
        srcset_request = RequestDescriptor(options=srcset_options)

        sources: list[dict[str, str]] = []
        if options.avif_add and main.ext != "avif":
            sources.append(self._alternate(source, srcset_options, "avif"))
        if options.webp_add and main.ext != "webp":
            sources.append(self._alternate(source, srcset_options, "webp"))

        attrs: dict[str, Any] = {
            "src": main.url,
            "width": width,
            "height": height,
            "alt": options.alt or source.description or source.stem,
            "srcset": self.srcset(source, srcset_request),
            "sources": sources,
            "sizes": options.sizes or f"(max-width: {width}px) 100vw, {width}px",
            "class": list(options.class_),
            "style": list(options.style),
        }

        if self._settings.lqip:
            data_uri = self._placeholder(source)
            if data_uri:
                attrs["class"].append("lazyload")
                attrs["style"].append(
                    f'background-image: url("{data_uri}"); '
                    + "background-size: cover; background-position: center;"
                )

        lazy = _is_lazy(options.loading, self._settings.lazyload)
        attrs["loading"] = "lazy" if lazy else "eager"
        attrs["decoding"] = "async" if lazy else "sync"
        if options.is_first:
            attrs["fetchpriority"] = "high"

        return attrs

    def _alternate(
        self, source: SourceImage, options: DerivativeOptions, fmt: str
    ) -> dict[str, str]:
        request = RequestDescriptor(options=options.model_copy(update={"format": fmt}))
        return {"type": f"image/{fmt}", "srcset": self.srcset(source, request)}


def _is_lazy(loading: bool | str | None, default: bool) -> bool:
    # loading=True asks for eager loading
    if loading is True:
        return False
    if isinstance(loading, str) and loading:
        return loading.lower() != "eager"
    return default
