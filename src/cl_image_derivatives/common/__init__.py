"""Common module - settings, schemas, naming, storage and the deferred queue."""

from .cache_key import CacheKeyEncoder
from .config_parser import parse_responsive_config, parse_table
from .dimensions import DimensionResolver, Dimensions
from .parameters import ParameterResolver
from .storage import DerivativeStorage

__all__ = [
    "CacheKeyEncoder",
    "DerivativeStorage",
    "DimensionResolver",
    "Dimensions",
    "ParameterResolver",
    "parse_responsive_config",
    "parse_table",
]
