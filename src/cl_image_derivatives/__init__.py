"""cl_image_derivatives - on-demand responsive image derivatives."""

from .common.deferred_queue import DeferredQueue
from .common.errors import (
    ConfigError,
    DerivativeError,
    DriverUnavailable,
    EncodeError,
    SourceNotFound,
)
from .common.schemas import (
    DerivativeOptions,
    MissResult,
    MissStatus,
    QueueDescriptor,
    RequestDescriptor,
    SourceImage,
    Variation,
)
from .common.settings import DerivativeSettings, OutputFormat
from .routes import create_router
from .service import DerivativeRequest, ImageDerivativeService
from .transform.engine import TransformEngine

__version__ = "0.1.0"

__all__ = [
    "DerivativeSettings",
    "OutputFormat",
    "DerivativeOptions",
    "RequestDescriptor",
    "SourceImage",
    "Variation",
    "MissResult",
    "MissStatus",
    "QueueDescriptor",
    "DerivativeError",
    "ConfigError",
    "SourceNotFound",
    "EncodeError",
    "DriverUnavailable",
    "DeferredQueue",
    "TransformEngine",
    "DerivativeRequest",
    "ImageDerivativeService",
    "create_router",
    "__version__",
]
