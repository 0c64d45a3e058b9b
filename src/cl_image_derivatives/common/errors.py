"""Error taxonomy for derivative generation."""

from __future__ import annotations

from pathlib import Path


class DerivativeError(Exception):
    """Base class for derivative-related errors."""


class ConfigError(DerivativeError):
    """Malformed responsive configuration. Fatal at startup."""

    def __init__(self, entry: str, reason: str):
        self.entry: str = entry
        self.reason: str = reason
        super().__init__(f"Invalid configuration entry '{entry}': {reason}")


class SourceNotFound(DerivativeError, FileNotFoundError):
    def __init__(self, path: str | Path):
        self.path: str = str(path)
        super().__init__(f"Source file not found: {path}")


class EncodeError(DerivativeError):
    """Codec failure while reading, transforming or writing an image."""

    def __init__(self, path: str | Path, reason: str):
        self.path: str = str(path)
        self.reason: str = reason
        super().__init__(f"Failed to encode '{path}': {reason}")


class DriverUnavailable(DerivativeError):
    def __init__(self, driver: str, reason: str = "no usable image codec backend"):
        self.driver: str = driver
        super().__init__(f"Image driver '{driver}' unavailable: {reason}")
