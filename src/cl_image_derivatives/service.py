"""ImageDerivativeService - the application-facing facade.

Wires configuration parsing, parameter resolution, cache naming, the
deferred queue, the transform engine and srcset/markup derivation
together around one immutable ``DerivativeSettings``.

Example:
    from cl_image_derivatives import DerivativeSettings, ImageDerivativeService

    service = ImageDerivativeService(DerivativeSettings(root="./site/files"))
    variation = service.size("gallery/photo.jpg", 640, 360)
    html = service.render("gallery/photo.jpg", "landscape-1-2")
"""

from pathlib import Path
from typing import Any, ClassVar

from loguru import logger
from pydantic import BaseModel, ConfigDict

from .common.cache_key import CacheKeyEncoder
from .common.config_parser import parse_responsive_config
from .common.deferred_queue import DeferredQueue
from .common.dimensions import DimensionResolver, Dimensions
from .common.errors import DerivativeError
from .common.parameters import HeightArg, OptionsArg, ParameterResolver, WidthArg
from .common.schemas import (
    MissResult,
    NamedSize,
    RequestDescriptor,
    SourceImage,
    Variation,
)
from .common.settings import DerivativeSettings
from .common.storage import DerivativeStorage
from .responsive.markup import inject_lazyload, render_markup
from .responsive.named_sizes import register_named_sizes
from .responsive.srcset import ResponsiveSetBuilder
from .transform.driver import DriverInfo, select_driver
from .transform.engine import TransformEngine

SourceArg = SourceImage | Path | str


class DerivativeRequest(BaseModel):
    """One call-site request, before normalization."""

    source: SourceImage | Path | str
    width: int | str | None = None
    height: int | dict[str, Any] | None = None
    options: dict[str, Any] | bool | int | str | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class ImageDerivativeService:
    """Resolve, name, generate or defer, and describe image derivatives.

    Construction parses the responsive configuration and selects the codec
    driver; ``ConfigError`` and ``DriverUnavailable`` propagate from here.
    """

    def __init__(self, settings: DerivativeSettings):
        self.settings: DerivativeSettings = settings

        self._config = parse_responsive_config(settings)
        self._driver: DriverInfo = select_driver(settings.driver)

        self._dimensions = DimensionResolver(self._config)
        self._named_sizes: dict[str, NamedSize] = register_named_sizes(
            self._config, self._dimensions
        )
        self._parameters = ParameterResolver(settings, self._named_sizes)
        self._keys = CacheKeyEncoder(settings)
        self._storage = DerivativeStorage(settings.root, settings.base_url)
        self._engine = TransformEngine(settings, self._driver)
        self._queue = DeferredQueue(self._storage, self._engine)
        self._responsive = ResponsiveSetBuilder(
            settings,
            self._dimensions,
            self._config.factors,
            self._variation,
            self._engine.lqip,
        )

        logger.info(
            f"Image derivatives ready: root={self._storage.root} driver={self._driver.name} "
            + f"formats={sorted(self._driver.formats)} named_sizes={len(self._named_sizes)}"
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def storage(self) -> DerivativeStorage:
        return self._storage

    @property
    def engine(self) -> TransformEngine:
        return self._engine

    @property
    def queue(self) -> DeferredQueue:
        return self._queue

    @property
    def driver(self) -> DriverInfo:
        return self._driver

    @property
    def named_sizes(self) -> dict[str, NamedSize]:
        return self._named_sizes

    def calculate(
        self,
        width: int | None = None,
        height: int | None = None,
        ratio_key: str | None = None,
        breakpoint_key: str | None = None,
    ) -> Dimensions:
        return self._dimensions.calculate(width, height, ratio_key, breakpoint_key)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def source(self, source: SourceArg, description: str = "") -> SourceImage:
        """Open a source by absolute path or root-relative path.

        Raises:
            SourceNotFound: No such file
            ValueError: Relative path escapes the root
        """
        if isinstance(source, SourceImage):
            return source
        path = Path(source)
        if not path.is_absolute():
            path = self._storage.safe_path(str(source))
        return SourceImage.open(path, description=description)

    @staticmethod
    def _is_svg(source: SourceArg) -> bool:
        path = source.path if isinstance(source, SourceImage) else Path(source)
        return path.suffix.lower() == ".svg"

    # ------------------------------------------------------------------
    # Derivatives
    # ------------------------------------------------------------------

    def resolve(self, request: DerivativeRequest) -> Variation:
        """Resolve a request to its derivative, generating or queueing it if missing.

        SVG sources are vector and are returned unchanged.
        """
        if self._is_svg(request.source):
            path = self._source_path(request.source)
            return Variation(path=path, url=self._storage.url_for(path), width=0, height=0)

        source = self.source(request.source)
        descriptor = self._parameters.resolve(
            source, request.width, request.height, request.options
        )
        return self._variation(source, descriptor)

    def _source_path(self, source: SourceArg) -> Path:
        if isinstance(source, SourceImage):
            return source.path
        path = Path(source)
        return path if path.is_absolute() else self._storage.safe_path(str(source))

    def descriptor(
        self,
        source: SourceArg,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> RequestDescriptor:
        """Normalized request, without touching the filesystem beyond the source."""
        return self._parameters.resolve(self.source(source), width, height, options)

    def variation_path(self, source: SourceArg, descriptor: RequestDescriptor) -> Path:
        return self._keys.variation_path(self.source(source), descriptor)

    def _variation(self, source: SourceImage, descriptor: RequestDescriptor) -> Variation:
        path = self._keys.variation_path(source, descriptor)
        variation = Variation(
            path=path,
            url=self._storage.url_for(path),
            width=descriptor.width,
            height=descriptor.height,
        )
        if path.is_file():
            return variation

        if descriptor.options.delayed:
            _ = self._queue.enqueue(source.path, descriptor, path)
            return variation.model_copy(update={"pending": True})

        try:
            _ = self._engine.generate(
                source,
                descriptor.width,
                descriptor.height,
                descriptor.options,
                destination=path,
            )
        except DerivativeError as e:
            logger.error(
                f"Failed to generate {path.name} from {source.path} "
                + f"({descriptor.width}x{descriptor.height}, "
                + f"options={descriptor.options.to_record()}): {e}"
            )
            raise
        return variation

    def size(
        self,
        source: SourceArg,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> Variation:
        return self.resolve(
            DerivativeRequest(source=source, width=width, height=height, options=options)
        )

    def crop(
        self,
        source: SourceArg,
        x: int,
        y: int,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> Variation:
        """Crop a ``width`` x ``height`` region anchored at (x, y)."""
        if self._is_svg(source):
            return self.size(source, width, height, options)
        image = self.source(source)
        descriptor = self._parameters.resolve(image, width, height, options)
        cropped = descriptor.options.model_copy(update={"crop_x": x, "crop_y": y})
        return self._variation(image, descriptor.model_copy(update={"options": cropped}))

    # ------------------------------------------------------------------
    # Responsive markup
    # ------------------------------------------------------------------

    def srcset(
        self,
        source: SourceArg,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> str:
        image = self.source(source)
        return self._responsive.srcset(
            image, self._parameters.resolve(image, width, height, options)
        )

    def attrs(
        self,
        source: SourceArg,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> dict[str, Any]:
        image = self.source(source)
        return self._responsive.attrs(
            image, self._parameters.resolve(image, width, height, options)
        )

    def render(
        self,
        source: SourceArg,
        width: WidthArg = None,
        height: HeightArg = None,
        options: OptionsArg = None,
    ) -> str:
        return render_markup(self.attrs(source, width, height, options))

    def lqip(self, source: SourceArg) -> str:
        return self._engine.lqip(self.source(source))

    def inject_lazyload(self, document: str) -> str:
        """Add the lazy-load fade-in snippet to a page when enabled."""
        if not self.settings.inline_lazyload:
            return document
        return inject_lazyload(document)

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    def fulfill_on_miss(self, relative_path: str) -> MissResult:
        """Serve a request for a missing derivative from its pending descriptor.

        Raises:
            ValueError: Path escapes the root
        """
        return self._queue.fulfill_on_miss(self._storage.safe_path(relative_path))

    def delete_variations(self, source: SourceArg) -> list[Path]:
        """Remove every derivative, descriptor and placeholder of ``source``."""
        path = self._source_path(source)
        return DerivativeStorage.remove_variations(path)

    def url_for(self, path: Path) -> str:
        return self._storage.url_for(path)
